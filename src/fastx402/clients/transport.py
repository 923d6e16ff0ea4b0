"""
Single-retry payment transport.

``RetryingTransport`` wraps any async "execute a request" function. On a
402 carrying a challenge it asks the signer for an assertion and sends the
original request once more with the ``X-PAYMENT`` header:

    SENT ──► DONE
      │
      └──► CHALLENGE_RECEIVED ──► SIGNING ──► RETRIED
                                     │
                                     └──► FAILED

DONE, RETRIED and FAILED are terminal, so ``execute`` runs at most twice.
"""

import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from ..constants import PAYMENT_REQUIRED_STATUS
from ..engine.exceptions import ConfigurationError, InvalidTransition, PaymentSigningFailedError
from ..schemas.https import ClientPaymentHeader
from ..schemas.payments import PaymentAssertion, PaymentChallenge
from .signers import Signer

logger = logging.getLogger(__name__)

ExecuteFunc = Callable[[httpx.Request], Awaitable[httpx.Response]]


class TransportState(str, Enum):
    SENT = "sent"
    CHALLENGE_RECEIVED = "challenge_received"
    SIGNING = "signing"
    DONE = "done"
    RETRIED = "retried"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    TransportState.SENT: {TransportState.DONE, TransportState.CHALLENGE_RECEIVED},
    TransportState.CHALLENGE_RECEIVED: {TransportState.SIGNING},
    TransportState.SIGNING: {TransportState.RETRIED, TransportState.FAILED},
    TransportState.DONE: set(),
    TransportState.RETRIED: set(),
    TransportState.FAILED: set(),
}


class _Exchange:
    """State of one ``perform`` call."""

    def __init__(self, request: httpx.Request, response: httpx.Response):
        self.state = TransportState.SENT
        self.request = request
        self.response = response
        self.challenge: Optional[PaymentChallenge] = None
        self.assertion: Optional[PaymentAssertion] = None

    @property
    def terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: TransportState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        self.state = target


def parse_challenge(response: httpx.Response) -> Optional[PaymentChallenge]:
    """Challenge from a 402 body, or ``None`` if there is no usable one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or not body.get("challenge"):
        return None
    try:
        return PaymentChallenge.model_validate(body["challenge"])
    except ValidationError as e:
        logger.debug("Ignoring unparsable challenge: %s", e)
        return None


def _coerce_assertion(result, challenge: PaymentChallenge) -> Optional[PaymentAssertion]:
    if result is None or isinstance(result, PaymentAssertion):
        return result
    if isinstance(result, Mapping):
        data = dict(result)
        data.setdefault("challenge", challenge)
        try:
            return PaymentAssertion.model_validate(data)
        except ValidationError as e:
            raise PaymentSigningFailedError(f"Signer returned an invalid assertion: {e}") from e
    raise PaymentSigningFailedError(
        f"Signer returned unsupported type: {type(result).__name__}"
    )


class RetryingTransport:
    """
    Client state machine around an execute function.

    Args:
        execute: Async function sending an ``httpx.Request``.
        signer: Callable turning a challenge into an assertion.
    """

    def __init__(self, execute: ExecuteFunc, signer: Optional[Signer] = None):
        self._execute = execute
        self.signer = signer
        self._steps: Dict[TransportState, Callable[[_Exchange], Awaitable[None]]] = {
            TransportState.SENT: self._on_sent,
            TransportState.CHALLENGE_RECEIVED: self._on_challenge,
            TransportState.SIGNING: self._on_signing,
        }

    async def perform(self, request: httpx.Request) -> httpx.Response:
        """
        Send ``request``, paying and retrying once if challenged.

        Raises:
            ConfigurationError: Challenged with no signer configured.
            PaymentSigningFailedError: The signer produced no assertion.
        """
        await request.aread()
        exchange = _Exchange(request, await self._execute(request))
        while not exchange.terminal:
            await self._steps[exchange.state](exchange)
        return exchange.response

    async def _on_sent(self, exchange: _Exchange) -> None:
        response = exchange.response
        if response.status_code != PAYMENT_REQUIRED_STATUS:
            exchange.transition(TransportState.DONE)
            return
        await response.aread()
        exchange.challenge = parse_challenge(response)
        if exchange.challenge is None:
            logger.debug("402 from %s without a challenge, returning as is", exchange.request.url)
            exchange.transition(TransportState.DONE)
            return
        logger.debug(
            "Challenge received from %s price=%s currency=%s",
            exchange.request.url, exchange.challenge.price, exchange.challenge.currency,
        )
        exchange.transition(TransportState.CHALLENGE_RECEIVED)

    async def _on_challenge(self, exchange: _Exchange) -> None:
        if self.signer is None:
            raise ConfigurationError("Payment required but no signer is configured")
        exchange.transition(TransportState.SIGNING)

    async def _on_signing(self, exchange: _Exchange) -> None:
        result = self.signer(exchange.challenge)
        if inspect.isawaitable(result):
            result = await result
        try:
            exchange.assertion = _coerce_assertion(result, exchange.challenge)
        except PaymentSigningFailedError:
            exchange.transition(TransportState.FAILED)
            raise
        if exchange.assertion is None:
            exchange.transition(TransportState.FAILED)
            raise PaymentSigningFailedError("Signer returned no payment assertion")

        retry = self.build_retry_request(exchange.request, exchange.assertion)
        await exchange.response.aclose()
        exchange.response = await self._execute(retry)
        exchange.transition(TransportState.RETRIED)
        logger.debug("Retried %s with payment, status %s", retry.url, exchange.response.status_code)

    @staticmethod
    def build_retry_request(request: httpx.Request, assertion: PaymentAssertion) -> httpx.Request:
        """Copy of ``request`` with only ``X-PAYMENT`` added."""
        headers = request.headers.copy()
        headers.update(ClientPaymentHeader(payment=assertion.to_header()).model_dump(by_alias=True))
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=dict(request.extensions),
        )
