"""
Built-in event handlers for the x402 payment workflow.

Implements the server flow: payment header → decode → verify → grant, or
a fresh 402 challenge whenever something is missing or wrong.
"""

import json
import logging
from typing import Any, Dict, Optional, Union

from ..constants import INVALID_HEADER_FORMAT
from ..engine.events import (
    AuthorizationSuccessEvent,
    Dependencies,
    EventBus,
    Http402PaymentEvent,
    PaymentReceivedEvent,
    RequestInitEvent,
    VerifyFailedEvent,
)
from ..engine.exceptions import MalformedPaymentHeaderError, MissingPaymentHeaderError
from ..schemas.payments import PaymentChallenge
from .challenges import create_challenge, expected_challenge_fields

logger = logging.getLogger(__name__)


def extract_payment_payload(payment_header: Optional[str]) -> Dict[str, Any]:
    """
    Decode the ``X-PAYMENT`` header into a JSON object.

    Raises:
        MissingPaymentHeaderError: Header absent or blank.
        MalformedPaymentHeaderError: Not JSON, or JSON but not an object.
    """
    if payment_header is None or not payment_header.strip():
        raise MissingPaymentHeaderError("X-PAYMENT header is missing")
    try:
        payload = json.loads(payment_header)
    except (TypeError, ValueError) as e:
        raise MalformedPaymentHeaderError(INVALID_HEADER_FORMAT) from e
    if not isinstance(payload, dict):
        raise MalformedPaymentHeaderError(INVALID_HEADER_FORMAT)
    return payload


# ==================== Event Handlers ====================

async def handle_request_init(
    event: RequestInitEvent,
    deps: Dependencies
) -> Union[PaymentReceivedEvent, VerifyFailedEvent, Http402PaymentEvent]:
    """Decode the payment header, or challenge when there is none."""
    try:
        payload = extract_payment_payload(event.payment_header)
    except MissingPaymentHeaderError:
        return Http402PaymentEvent(challenge=create_challenge(deps.route_config, deps.config))
    except MalformedPaymentHeaderError as e:
        return VerifyFailedEvent(error_message=str(e))
    return PaymentReceivedEvent(payload=payload)


async def handle_payment_received(
    event: PaymentReceivedEvent,
    deps: Dependencies
) -> Union[AuthorizationSuccessEvent, VerifyFailedEvent]:
    """Verify the decoded assertion against this route's expectations."""
    expected = expected_challenge_fields(deps.route_config, deps.config)
    result = await deps.engine.verify(event.payload, expected)
    if result.valid:
        return AuthorizationSuccessEvent(
            verification=result,
            challenge=PaymentChallenge.model_validate(event.payload["challenge"]),
        )
    return VerifyFailedEvent(error_message=result.error)


async def handle_verify_failed(
    event: VerifyFailedEvent,
    deps: Dependencies
) -> Http402PaymentEvent:
    """Answer a rejected payment with a new challenge and the reason."""
    return Http402PaymentEvent(
        challenge=create_challenge(deps.route_config, deps.config),
        verification_error=event.error_message,
    )


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with built-in handlers."""
    event_bus = EventBus()
    event_bus.subscribe(RequestInitEvent, handle_request_init)
    event_bus.subscribe(PaymentReceivedEvent, handle_payment_received)
    event_bus.subscribe(VerifyFailedEvent, handle_verify_failed)
    return event_bus
