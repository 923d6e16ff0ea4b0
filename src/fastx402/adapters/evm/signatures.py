"""
EVM Off-Chain Signing Utilities

Local EIP-712 signing helpers for x402 payment challenges. All
cryptographic operations are performed in-process using ``eth_account``;
no RPC calls or on-chain state queries are made.

Exported helpers
----------------
sign_payment_challenge
    Build the EIP-712 payload for a challenge, sign it with a private key
    and return a complete ``PaymentAssertion``.
generate_nonce
    Cryptographically random hex nonce for challenges.
validate_address
    Well-formedness check for account addresses.
"""

import os

from eth_account import Account
from eth_utils import is_address

from .verifies import build_payment_typed_data, encode_payment_message
from ...constants import NONCE_BYTES
from ...schemas.payments import PaymentAssertion, PaymentChallenge


def sign_payment_challenge(
    challenge: PaymentChallenge,
    private_key: str,
) -> PaymentAssertion:
    """
    Sign a payment challenge and return the assertion to send back.

    The EIP-712 structured-data hash is computed from the x402 domain
    (bound to ``challenge.chain_id``) and the ``Payment`` message, then
    signed with the supplied key.

    Args:
        challenge:   The challenge received in a 402 response.
        private_key: Hex-encoded secp256k1 private key (with or without ``0x``).

    Returns:
        ``PaymentAssertion`` carrying the 65-byte signature as 0x-hex, the
        signer address, the challenge verbatim and the message hash.

    Example::

        assertion = sign_payment_challenge(challenge, "0xYOUR_PRIVATE_KEY")
        headers = {"X-PAYMENT": assertion.to_header()}
    """
    account = Account.from_key(private_key)
    signed = Account.sign_typed_data(
        account.key,
        full_message=build_payment_typed_data(challenge).to_dict(),
    )

    return PaymentAssertion(
        signature="0x" + bytes(signed.signature).hex(),
        signer=account.address,
        challenge=challenge,
        message_hash=encode_payment_message(challenge),
    )


def generate_nonce(num_bytes: int = NONCE_BYTES) -> str:
    """
    Generate a random 0x-prefixed hex nonce.

    Args:
        num_bytes: Number of random bytes; at least 16.

    Raises:
        ValueError: If ``num_bytes`` is below 16.
    """
    if num_bytes < NONCE_BYTES:
        raise ValueError(f"Nonce must be at least {NONCE_BYTES} bytes, got {num_bytes}")
    return "0x" + os.urandom(num_bytes).hex()


def validate_address(address: str) -> bool:
    """True if ``address`` is a well-formed account address (checksum enforced on mixed case)."""
    return isinstance(address, str) and is_address(address)
