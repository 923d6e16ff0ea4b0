from .http_client import Http402Client
from .signers import AuthoritySigner, LocalSigner, Signer
from .transport import RetryingTransport, TransportState

__all__ = [
    "Http402Client",
    "AuthoritySigner",
    "LocalSigner",
    "Signer",
    "RetryingTransport",
    "TransportState",
]
