"""
Payment Schema Models

Pydantic models for the values that travel through the payment handshake
(challenge, assertion, verification result) and for the configuration
values that shape challenges (route and process-wide configuration).

Wire names follow the protocol: challenges use ``chain_id`` and
assertions carry ``signature``, ``signer`` and ``challenge``.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import AliasChoices, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..constants import (
    DEFAULT_CHAIN_ID,
    DEFAULT_CURRENCY,
    DEFAULT_MAX_CHALLENGE_AGE,
    DEFAULT_MAX_CLOCK_SKEW,
)
from ..engine.exceptions import ConfigurationError
from .bases import CanonicalModel


def _validate_decimal_price(value: str) -> str:
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Price must be a decimal string, got {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Price must be a finite non-negative decimal, got {value!r}")
    return value


class PaymentChallenge(CanonicalModel):
    """
    Server-issued description of a required payment.

    A challenge is immutable once created. It is round-tripped through the
    client inside the payment header rather than stored on the server.

    Attributes:
        price: Decimal amount as a string, kept byte-for-byte as issued.
        currency: Currency symbol (e.g. ``"USDC"``).
        chain_id: Target chain id (wire name ``chain_id``; ``chainId`` accepted on input).
        merchant: Receiving account address.
        timestamp: Issuance time in unix seconds.
        description: Optional human-readable description.
        nonce: Optional opaque random value, not part of the signed message.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    price: str = Field(..., description="Decimal price string")
    currency: str = Field(..., min_length=1, description="Currency symbol")
    chain_id: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("chain_id", "chainId"),
        serialization_alias="chain_id",
        description="Chain identifier",
    )
    merchant: str = Field(..., description="Merchant account address")
    timestamp: int = Field(..., ge=0, description="Issuance time (unix seconds)")
    description: Optional[str] = Field(None, description="Optional description")
    nonce: Optional[str] = Field(None, description="Opaque random nonce")

    @field_validator("merchant")
    @classmethod
    def _check_merchant(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"Invalid merchant address: {value!r}")
        return value

    @property
    def checksum_merchant(self) -> str:
        """Merchant address in EIP-55 checksummed form."""
        return to_checksum_address(self.merchant)


class PaymentAssertion(CanonicalModel):
    """
    Client-produced signed proof that a specific challenge was agreed to.

    ``message_hash`` is informational only; it is never sent in the
    payment header and the server always recomputes the hash itself.
    """

    signature: str = Field(..., min_length=1)
    signer: str = Field(..., min_length=1)
    challenge: PaymentChallenge
    message_hash: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("message_hash", "messageHash"),
        serialization_alias="messageHash",
    )

    def to_header(self) -> str:
        """Serialize into the ``X-PAYMENT`` header value."""
        return PaymentAssertion(
            signature=self.signature,
            signer=self.signer,
            challenge=self.challenge,
        ).to_canonical_json()


class VerificationResult(CanonicalModel):
    """
    Outcome of verifying a payment assertion.

    Never partially valid: ``valid=False`` always carries an ``error``.
    """

    valid: bool
    signer: Optional[str] = None
    error: Optional[str] = None
    tx_hash: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("tx_hash", "txHash"),
        serialization_alias="txHash",
    )

    @model_validator(mode="after")
    def _invalid_needs_error(self) -> "VerificationResult":
        if not self.valid and not self.error:
            raise ValueError("An invalid verification result must carry an error message")
        return self

    @classmethod
    def success(cls, signer: str, tx_hash: Optional[str] = None) -> "VerificationResult":
        return cls(valid=True, signer=signer, tx_hash=tx_hash)

    @classmethod
    def failure(cls, error: str) -> "VerificationResult":
        return cls(valid=False, error=error)


class RouteConfig(CanonicalModel):
    """
    Per-route payment requirements.

    Route values take precedence over the process-wide ``PaymentConfig``.
    ``price`` has no default: a route without one is a configuration error.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    price: str
    currency: Optional[str] = None
    chain_id: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("chain_id", "chainId"),
    )
    description: Optional[str] = None

    @field_validator("price")
    @classmethod
    def _check_price(cls, value: str) -> str:
        return _validate_decimal_price(value)

    @classmethod
    def from_options(cls, **options: Any) -> "RouteConfig":
        """
        Build a route configuration, reporting problems as ``ConfigurationError``.

        Raises:
            ConfigurationError: If ``price`` is missing or any field is invalid.
        """
        if options.get("price") is None:
            raise ConfigurationError("Route payment configuration requires a price")
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid route payment configuration: {e}") from e


class VerificationMode(str, Enum):
    """
    Where payment verification happens.

    Attributes:
        LOCAL: Signature recovery in-process
        DELEGATED: Verification delegated to a Verification Authority
    """
    LOCAL = "local"
    DELEGATED = "delegated"

    @classmethod
    def from_string(cls, value: str) -> "VerificationMode":
        aliases = {"instant": cls.LOCAL, "embedded": cls.DELEGATED}
        normalized = value.strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unsupported verification mode: {value}")


class PaymentConfig(CanonicalModel):
    """
    Process-wide payment configuration.

    Instances are frozen. Build one at startup and hand it to the server,
    engine and guard; reconfiguring means constructing new instances, never
    mutating this one while traffic is flowing.

    Attributes:
        merchant_address: Receiving address, stored checksummed.
        chain_id: Default chain id for routes that do not set one.
        currency: Default currency for routes that do not set one.
        mode: ``local`` or ``delegated`` (``instant``/``embedded`` accepted).
        authority: Optional Verification Authority used in delegated mode.
        authority_name: Name the authority was selected by, if any.
        max_challenge_age: Seconds a challenge stays acceptable; ``None`` disables.
        max_clock_skew: Seconds a challenge may be dated in the future.
        replay_protection: Reject a payment header presented again (off by default).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    merchant_address: str
    chain_id: int = Field(DEFAULT_CHAIN_ID, ge=0)
    currency: str = Field(DEFAULT_CURRENCY, min_length=1)
    mode: VerificationMode = VerificationMode.LOCAL
    authority: Optional[Any] = Field(None, exclude=True)
    authority_name: Optional[str] = None
    max_challenge_age: Optional[int] = Field(DEFAULT_MAX_CHALLENGE_AGE, gt=0)
    max_clock_skew: int = Field(DEFAULT_MAX_CLOCK_SKEW, ge=0)
    replay_protection: bool = False

    @field_validator("merchant_address")
    @classmethod
    def _checksum_merchant(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"Invalid merchant address: {value!r}")
        return to_checksum_address(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return VerificationMode.from_string(value)
        return value

    @field_validator("authority")
    @classmethod
    def _check_authority(cls, value: Any) -> Any:
        from ..adapters.bases import VerificationAuthority

        if value is not None and not isinstance(value, VerificationAuthority):
            raise ValueError(
                f"authority must be a VerificationAuthority, got {type(value).__name__}"
            )
        return value

    @property
    def delegates(self) -> bool:
        """True when verification is handed to a configured authority."""
        return self.mode == VerificationMode.DELEGATED and self.authority is not None
