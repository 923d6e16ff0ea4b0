from .apps import Http402Server, payment_required
from .challenges import create_challenge, expected_challenge_fields
from .flows import extract_payment_payload, setup_event_bus
from .guards import GuardDecision, GuardState, GuardStateMachine, ResourceGuard
from .verification import ConsumedPaymentCache, VerificationEngine

__all__ = [
    "Http402Server",
    "payment_required",
    "create_challenge",
    "expected_challenge_fields",
    "extract_payment_payload",
    "setup_event_bus",
    "GuardDecision",
    "GuardState",
    "GuardStateMachine",
    "ResourceGuard",
    "ConsumedPaymentCache",
    "VerificationEngine",
]
