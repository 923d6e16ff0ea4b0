"""
fastx402: HTTP 402 payment-gated access for FastAPI servers and httpx clients.

Server:
    app = Http402Server(PaymentConfig(merchant_address="0x..."))

    @app.get("/data")
    @app.payment_required(price="0.01")
    async def data(verification):
        return {"payer": verification.signer}

Client:
    async with Http402Client(signer=LocalSigner(private_key)) as client:
        await client.get("http://localhost:8000/data")
"""

from .adapters import (
    AuthorityRegistry,
    LocalAuthority,
    PrivyAuthority,
    VerificationAuthority,
    create_authority,
)
from .adapters.evm import (
    build_payment_typed_data,
    encode_payment_message,
    generate_nonce,
    recover_signer,
    sign_payment_challenge,
    verify_signature,
)
from .clients import AuthoritySigner, Http402Client, LocalSigner, RetryingTransport
from .configs import load_config_from_env
from .engine.exceptions import (
    ConfigurationError,
    PaymentSigningFailedError,
    PaymentVerificationError,
    X402Error,
)
from .schemas import (
    PaymentAssertion,
    PaymentChallenge,
    PaymentConfig,
    RouteConfig,
    VerificationMode,
    VerificationResult,
)
from .servers import (
    Http402Server,
    ResourceGuard,
    VerificationEngine,
    create_challenge,
    payment_required,
)

__version__ = "0.1.0"

__all__ = [
    "AuthorityRegistry",
    "LocalAuthority",
    "PrivyAuthority",
    "VerificationAuthority",
    "create_authority",
    "build_payment_typed_data",
    "encode_payment_message",
    "generate_nonce",
    "recover_signer",
    "sign_payment_challenge",
    "verify_signature",
    "AuthoritySigner",
    "Http402Client",
    "LocalSigner",
    "RetryingTransport",
    "load_config_from_env",
    "ConfigurationError",
    "PaymentSigningFailedError",
    "PaymentVerificationError",
    "X402Error",
    "PaymentAssertion",
    "PaymentChallenge",
    "PaymentConfig",
    "RouteConfig",
    "VerificationMode",
    "VerificationResult",
    "Http402Server",
    "ResourceGuard",
    "VerificationEngine",
    "create_challenge",
    "payment_required",
]
