"""
EVM Signature Verification Helpers

Off-chain encoding and verification for x402 payment signatures. The
issuing side and the verifying side both hash through
``encode_payment_message``, so a challenge always produces the same
EIP-712 digest no matter which process computes it.

All cryptographic operations are performed in-process using
``eth_account`` and ``eth_keys``; no RPC calls are made.

Exported helpers
----------------
get_eip712_domain / get_eip712_types
    The fixed domain (bound to a chain id) and the ``Payment`` type schema.
create_payment_message / build_payment_typed_data
    Canonicalize a challenge into the signed message / full typed-data envelope.
encode_payment_message
    EIP-712 digest of a challenge (0x-prefixed hex).
recover_signer
    Recover the signing address from a 65-byte signature over a digest.
verify_signature
    Case-insensitive comparison of the recovered address with a claimed signer.
"""

from typing import Dict, List, Union

from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as KeysValidationError
from eth_utils import decode_hex, is_hex, keccak, to_checksum_address

from .standards import EIP712Domain, PaymentMessage, PaymentTypedData, payment_types
from ...engine.exceptions import MalformedSignatureError
from ...schemas.payments import PaymentChallenge

# ---------------------------------------------------------------------------
# Typed-data builders
# ---------------------------------------------------------------------------


def get_eip712_domain(chain_id: int) -> EIP712Domain:
    """Fixed x402 domain bound to ``chain_id``; verifying contract is the zero address."""
    return EIP712Domain(chainId=chain_id)


def get_eip712_types() -> Dict[str, List[Dict[str, str]]]:
    """Field ordering and typing of the signed ``Payment`` struct (plus ``EIP712Domain``)."""
    return payment_types()


def create_payment_message(challenge: PaymentChallenge) -> PaymentMessage:
    """
    Canonicalize a challenge into the signed ``Payment`` message.

    The merchant is checksummed and a missing description becomes ``""``.
    The nonce is not part of the signed message.
    """
    return PaymentMessage(
        price=challenge.price,
        currency=challenge.currency,
        chainId=challenge.chain_id,
        merchant=to_checksum_address(challenge.merchant),
        timestamp=challenge.timestamp,
        description=challenge.description or "",
    )


def build_payment_typed_data(challenge: PaymentChallenge) -> PaymentTypedData:
    """
    Wrap a challenge in the full EIP-712 envelope without signing.

    Use this when signing is handled externally (a browser wallet's
    ``eth_signTypedData_v4``, an MPC service, a delegated authority).

    Example::

        payload = build_payment_typed_data(challenge).to_dict()
    """
    return PaymentTypedData(
        domain=get_eip712_domain(challenge.chain_id),
        message=create_payment_message(challenge),
    )


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def encode_payment_message(challenge: PaymentChallenge) -> str:
    """
    Compute the EIP-712 digest of a payment challenge.

    ``keccak256(0x19 || 0x01 || domainSeparator || hashStruct(message))``.
    Two challenges with identical price, currency, chain id, merchant,
    timestamp and description always hash identically; any difference in
    those fields changes the digest.

    Args:
        challenge: The challenge to hash.

    Returns:
        0x-prefixed 32-byte hex digest.
    """
    signable = encode_typed_data(full_message=build_payment_typed_data(challenge).to_dict())
    digest: bytes = keccak(b"\x19" + signable.version + signable.header + signable.body)
    return "0x" + digest.hex()


# ---------------------------------------------------------------------------
# Recovery / verification
# ---------------------------------------------------------------------------


def _hex_to_bytes(value: Union[str, bytes], name: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str) or not is_hex(value):
        raise MalformedSignatureError(f"{name} is not a hex string")
    try:
        return decode_hex(value)
    except ValueError as e:
        raise MalformedSignatureError(f"{name} is not valid hex: {e}") from e


def recover_signer(signature: Union[str, bytes], message_hash: Union[str, bytes]) -> str:
    """
    Recover the address that produced ``signature`` over ``message_hash``.

    A well-formed signature always recovers to *some* address; whether it
    is the expected one is for the caller to decide.

    Args:
        signature:    65-byte ``r || s || v`` signature (hex string or bytes).
                      ``v`` may be 0/1 or 27/28.
        message_hash: 32-byte digest (hex string or bytes).

    Returns:
        Checksummed address of the signer.

    Raises:
        MalformedSignatureError: If either input is structurally invalid.
    """
    sig_bytes = _hex_to_bytes(signature, "signature")
    hash_bytes = _hex_to_bytes(message_hash, "message hash")

    if len(sig_bytes) != 65:
        raise MalformedSignatureError(f"Signature must be 65 bytes, got {len(sig_bytes)}")
    if len(hash_bytes) != 32:
        raise MalformedSignatureError(f"Message hash must be 32 bytes, got {len(hash_bytes)}")

    v = sig_bytes[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        raise MalformedSignatureError(f"Invalid recovery id: {sig_bytes[64]}")

    r = int.from_bytes(sig_bytes[:32], "big")
    s = int.from_bytes(sig_bytes[32:64], "big")

    try:
        public_key = keys.Signature(vrs=(v, r, s)).recover_public_key_from_msg_hash(hash_bytes)
    except (BadSignature, KeysValidationError, ValueError) as e:
        raise MalformedSignatureError(f"Signature cannot be recovered: {e}") from e

    return public_key.to_checksum_address()


def verify_signature(
    signature: Union[str, bytes],
    message_hash: Union[str, bytes],
    signer: str,
) -> bool:
    """
    Check that ``signature`` over ``message_hash`` was produced by ``signer``.

    Returns:
        ``True`` if the recovered address case-insensitively equals
        ``signer``; ``False`` otherwise, including for malformed input.
    """
    try:
        recovered = recover_signer(signature, message_hash)
    except MalformedSignatureError:
        return False
    return recovered.lower() == signer.lower()

