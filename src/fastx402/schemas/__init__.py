from .bases import CanonicalModel
from .payments import (
    PaymentChallenge,
    PaymentAssertion,
    VerificationResult,
    RouteConfig,
    PaymentConfig,
    VerificationMode,
)
from .https import ClientPaymentHeader, Challenge402ResponsePayload

__all__ = [
    "CanonicalModel",
    "PaymentChallenge",
    "PaymentAssertion",
    "VerificationResult",
    "RouteConfig",
    "PaymentConfig",
    "VerificationMode",
    "ClientPaymentHeader",
    "Challenge402ResponsePayload",
]
