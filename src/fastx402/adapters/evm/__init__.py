from .standards import EIP712Domain, PaymentMessage, PaymentTypedData
from .verifies import (
    get_eip712_domain,
    get_eip712_types,
    create_payment_message,
    build_payment_typed_data,
    encode_payment_message,
    recover_signer,
    verify_signature,
)
from .signatures import sign_payment_challenge, generate_nonce, validate_address

__all__ = [
    "EIP712Domain",
    "PaymentMessage",
    "PaymentTypedData",
    "get_eip712_domain",
    "get_eip712_types",
    "create_payment_message",
    "build_payment_typed_data",
    "encode_payment_message",
    "recover_signer",
    "verify_signature",
    "sign_payment_challenge",
    "generate_nonce",
    "validate_address",
]
