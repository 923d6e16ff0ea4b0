"""
EIP-712 Typed-Data Models for x402 Payments

Dataclasses for the signing domain, the ``Payment`` message and the full
typed-data envelope, plus ``payment_types()``, the type schema shared by
signing and verification.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List

from ...constants import (
    EIP712_DOMAIN_NAME,
    EIP712_DOMAIN_VERSION,
    EIP712_VERIFYING_CONTRACT,
    EIP712_PRIMARY_TYPE,
)


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Binds payment signatures to the protocol name/version and to one chain.
    """
    chainId: int
    name: str = EIP712_DOMAIN_NAME
    version: str = EIP712_DOMAIN_VERSION
    verifyingContract: str = EIP712_VERIFYING_CONTRACT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# x402 Payment message
# -----------------------------


@dataclass
class PaymentMessage:
    """
    Message payload for the x402 ``Payment`` struct.

    Field order and typing follow ``payment_types()``. ``description`` is
    always a string: a challenge without one signs the empty string.

    Attributes:
        price: Decimal price string, exactly as issued.
        currency: Currency symbol.
        chainId: Chain id (uint256).
        merchant: Checksummed merchant address.
        timestamp: Challenge issuance time (uint256).
        description: Description or ``""``.
    """
    price: str
    currency: str
    chainId: int
    merchant: str
    timestamp: int
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": self.price,
            "currency": self.currency,
            "chainId": self.chainId,
            "merchant": self.merchant,
            "timestamp": self.timestamp,
            "description": self.description,
        }


def payment_types() -> Dict[str, List[Dict[str, str]]]:
    return {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
        ],
        EIP712_PRIMARY_TYPE: [
            {"name": "price", "type": "string"},
            {"name": "currency", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "merchant", "type": "address"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "description", "type": "string"},
        ],
    }


@dataclass
class PaymentTypedData:
    """
    Container for x402 payment typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout consumed by ``eth_account`` and by ``eth_signTypedData_v4`` in
    browser wallets, so the same envelope serves local signing, remote
    signing and verification.

    Attributes:
        domain: EIP712Domain instance describing the signing domain.
        message: PaymentMessage instance carrying the payload.
        primary_type: The primary EIP-712 type (``"Payment"``).
        types: The typed definitions required by EIP-712 (automatically set).
    """
    domain: EIP712Domain
    message: PaymentMessage

    primary_type: str = EIP712_PRIMARY_TYPE

    types: Dict[str, List[Dict[str, str]]] = field(default_factory=payment_types)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
