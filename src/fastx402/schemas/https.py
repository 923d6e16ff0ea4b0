"""
HTTP Request/Response Schema Models for the x402 Payment Protocol

Models for what crosses the wire between client and server:

1. Server answers an unpaid (or badly paid) request with 402 and a challenge
2. Client signs the challenge and retries with the ``X-PAYMENT`` header
3. Server verifies and marks the response with ``X-Payment-Response``
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import PAYMENT_REQUIRED_ERROR
from .payments import PaymentChallenge


class ClientPaymentHeader(BaseModel):
    """HTTP request headers added by the client on retry.

    Attributes:
        payment: Serialized ``PaymentAssertion`` (``X-PAYMENT``).
    """
    model_config = ConfigDict(populate_by_name=True)
    payment: str = Field(..., alias="X-PAYMENT")


class Challenge402ResponsePayload(BaseModel):
    """Server response payload for 402 Payment Required status.

    Attributes:
        error: Always ``"Payment Required"``.
        challenge: Fresh challenge the client must sign.
        verification_error: Why the previous attempt was rejected, if there was one.
    """
    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(default=PAYMENT_REQUIRED_ERROR)
    challenge: PaymentChallenge
    verification_error: Optional[str] = Field(
        default=None,
        alias="verificationError",
        description="Reason the presented payment was rejected",
    )

    def to_body(self) -> dict:
        """JSON body as sent to the client."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
