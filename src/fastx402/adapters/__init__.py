from .bases import VerificationAuthority
from .authorities import LocalAuthority, PrivyAuthority
from .registry import AuthorityRegistry, create_authority, default_registry

__all__ = [
    "VerificationAuthority",
    "LocalAuthority",
    "PrivyAuthority",
    "AuthorityRegistry",
    "create_authority",
    "default_registry",
]
