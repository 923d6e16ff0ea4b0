"""
Verification Authority Registry

Maps authority names (as found in ``X402_WAAS_PROVIDER``) to factories and
builds the selected authority.
"""

import logging
from typing import Callable, Dict

from .authorities import LocalAuthority, PrivyAuthority
from .bases import VerificationAuthority
from ..engine.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


AuthorityFactory = Callable[..., VerificationAuthority]


class AuthorityRegistry:
    """
    Registry of verification authority factories keyed by name.

    Example:
        registry = AuthorityRegistry()
        registry.register("privy", PrivyAuthority)
        authority = registry.create("privy", app_id="...", app_secret="...")
    """

    def __init__(self) -> None:
        self._factories: Dict[str, AuthorityFactory] = {}

    def register(self, name: str, factory: AuthorityFactory) -> None:
        """
        Register a factory under ``name`` (case-insensitive).

        Raises:
            ValueError: If ``name`` is empty.
        """
        if not name or not name.strip():
            raise ValueError("Authority name must be a non-empty string")
        self._factories[name.strip().lower()] = factory

    def names(self) -> list:
        return sorted(self._factories)

    def create(self, name: str, **options) -> VerificationAuthority:
        """
        Build the authority registered under ``name``.

        Args:
            name: Registered authority name, e.g. ``"privy"``.
            **options: Keyword arguments forwarded to the factory.

        Raises:
            ConfigurationError: Unknown name, or the factory rejected the options.
        """
        key = (name or "").strip().lower()
        factory = self._factories.get(key)
        if factory is None:
            raise ConfigurationError(
                f"Unsupported verification authority '{name}', expected one of {self.names()}"
            )
        try:
            authority = factory(**options)
        except ConfigurationError:
            raise
        except TypeError as e:
            raise ConfigurationError(f"Invalid options for authority '{key}': {e}") from e
        logger.debug("Created verification authority %s", key)
        return authority


default_registry = AuthorityRegistry()
default_registry.register(LocalAuthority.name, LocalAuthority)
default_registry.register(PrivyAuthority.name, PrivyAuthority)


def create_authority(name: str, **options) -> VerificationAuthority:
    """Build a verification authority from the default registry."""
    return default_registry.create(name, **options)
