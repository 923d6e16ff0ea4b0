"""
Per-request payment guard.

``ResourceGuard.process`` runs one request through the event chain and
returns a ``GuardDecision`` describing the response to send. Each call
owns its own ``GuardStateMachine``:

    OPEN ──► VERIFYING ──► GRANTED
      │          │
      └──────────┴──► CHALLENGE_ISSUED ──► DENIED

Any non-terminal state may move to FAULTED.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import (
    INTERNAL_ERROR_MESSAGE,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_REQUIRED_STATUS,
    PAYMENT_RESPONSE_HEADER,
    PAYMENT_VERIFIED_VALUE,
)
from ..engine.events import (
    AuthorizationSuccessEvent,
    Dependencies,
    EventBus,
    Http402PaymentEvent,
    PaymentReceivedEvent,
    RequestInitEvent,
    VerifyFailedEvent,
)
from ..engine.exceptions import InternalFaultError, InvalidTransition
from ..engine.executors import EventChain
from ..schemas.https import Challenge402ResponsePayload
from ..schemas.payments import PaymentChallenge, PaymentConfig, RouteConfig, VerificationResult
from .flows import setup_event_bus
from .verification import VerificationEngine

logger = logging.getLogger(__name__)


class GuardState(str, Enum):
    OPEN = "open"
    VERIFYING = "verifying"
    CHALLENGE_ISSUED = "challenge_issued"
    GRANTED = "granted"
    DENIED = "denied"
    FAULTED = "faulted"


ALLOWED_TRANSITIONS = {
    GuardState.OPEN: {GuardState.VERIFYING, GuardState.CHALLENGE_ISSUED, GuardState.FAULTED},
    GuardState.VERIFYING: {GuardState.GRANTED, GuardState.CHALLENGE_ISSUED, GuardState.FAULTED},
    GuardState.CHALLENGE_ISSUED: {GuardState.DENIED, GuardState.FAULTED},
    GuardState.GRANTED: set(),
    GuardState.DENIED: set(),
    GuardState.FAULTED: set(),
}


class GuardStateMachine:
    """State of a single guarded request."""

    def __init__(self) -> None:
        self.state = GuardState.OPEN

    @property
    def terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: GuardState) -> None:
        """
        Raises:
            InvalidTransition: ``target`` is not reachable from the current state.
        """
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        logger.debug("Guard transition %s -> %s", self.state.value, target.value)
        self.state = target


@dataclass
class GuardDecision:
    """What the guard decided for one request."""
    state: GuardState
    status_code: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    verification: Optional[VerificationResult] = None
    challenge: Optional[PaymentChallenge] = None

    @property
    def granted(self) -> bool:
        return self.state == GuardState.GRANTED


class ResourceGuard:
    """
    Payment gate for one protected resource.

    Args:
        route_config: Price and overrides of the resource.
        engine: Verification engine; its ``config`` supplies merchant and defaults.
        event_bus: Bus with the flow handlers, ``setup_event_bus()`` when omitted.
    """

    def __init__(
        self,
        route_config: RouteConfig,
        engine: VerificationEngine,
        event_bus: Optional[EventBus] = None,
    ):
        self.route_config = route_config
        self.engine = engine
        self.event_bus = event_bus or setup_event_bus()
        self.deps = Dependencies(config=engine.config, route_config=route_config, engine=engine)

    @property
    def config(self) -> PaymentConfig:
        return self.engine.config

    async def process(self, payment_header: Optional[str]) -> GuardDecision:
        """
        Decide the response for a request carrying ``payment_header``.

        Never raises for request content: unexpected errors become a
        FAULTED decision with a generic 500 body.
        """
        machine = GuardStateMachine()
        try:
            decision = await self._run(machine, payment_header)
        except Exception:
            logger.exception("Payment guard fault in state %s", machine.state.value)
            if not machine.terminal:
                machine.transition(GuardState.FAULTED)
            return GuardDecision(
                state=GuardState.FAULTED,
                status_code=500,
                body={"error": INTERNAL_ERROR_MESSAGE},
            )
        return decision

    async def _run(self, machine: GuardStateMachine, payment_header: Optional[str]) -> GuardDecision:
        decision = None
        chain = EventChain(self.event_bus, self.deps)
        async for event in chain.execute(RequestInitEvent(payment_header=payment_header)):
            if isinstance(event, (PaymentReceivedEvent, VerifyFailedEvent)):
                if machine.state == GuardState.OPEN:
                    machine.transition(GuardState.VERIFYING)

            elif isinstance(event, Http402PaymentEvent):
                machine.transition(GuardState.CHALLENGE_ISSUED)
                body = Challenge402ResponsePayload(
                    challenge=event.challenge,
                    verification_error=event.verification_error,
                ).to_body()
                machine.transition(GuardState.DENIED)
                logger.info(
                    "Payment required: price=%s currency=%s reason=%s",
                    event.challenge.price, event.challenge.currency,
                    event.verification_error or "no payment",
                )
                decision = GuardDecision(
                    state=machine.state,
                    status_code=PAYMENT_REQUIRED_STATUS,
                    body=body,
                    headers={PAYMENT_REQUIRED_HEADER: "true"},
                    challenge=event.challenge,
                )

            elif isinstance(event, AuthorizationSuccessEvent):
                machine.transition(GuardState.GRANTED)
                logger.info("Access granted to %s", event.verification.signer)
                decision = GuardDecision(
                    state=machine.state,
                    status_code=200,
                    headers={PAYMENT_RESPONSE_HEADER: PAYMENT_VERIFIED_VALUE},
                    verification=event.verification,
                    challenge=event.challenge,
                )

        if decision is None:
            raise InternalFaultError("Payment flow ended without a decision")
        return decision
