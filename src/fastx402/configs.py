"""
Environment-based configuration.

``load_config_from_env`` reads ``.env`` (via python-dotenv) plus the process
environment and returns a frozen ``PaymentConfig``. Values already present
in the environment win over the ``.env`` file.

Variables:
    X402_RECEIVER_ADDRESS / X402_MERCHANT_ADDRESS   receiving address (required)
    X402_CHAIN_ID                                   default chain id (8453)
    X402_CURRENCY                                   default currency (USDC)
    X402_MODE                                       local | delegated (instant | embedded)
    X402_WAAS_PROVIDER                              verification authority name
    X402_MAX_CHALLENGE_AGE                          seconds, 0 disables
    PRIVY_APP_ID / PRIVY_APP_SECRET / PRIVY_BASE_URL
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import ValidationError

from .adapters.registry import create_authority
from .constants import DEFAULT_CHAIN_ID, DEFAULT_CURRENCY, DEFAULT_MAX_CHALLENGE_AGE
from .engine.exceptions import ConfigurationError
from .schemas.payments import PaymentConfig, VerificationMode

logger = logging.getLogger(__name__)


def _get(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_int(key: str, default: int) -> int:
    raw = _get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def _authority_options(name: str) -> Dict[str, Any]:
    if name == "privy":
        options = {
            "app_id": _get("PRIVY_APP_ID"),
            "app_secret": _get("PRIVY_APP_SECRET"),
        }
        base_url = _get("PRIVY_BASE_URL")
        if base_url:
            options["base_url"] = base_url
        return options
    return {}


def load_config_from_env(env_path: Optional[Union[str, Path]] = None) -> PaymentConfig:
    """
    Build a ``PaymentConfig`` from environment variables.

    Args:
        env_path: Explicit ``.env`` file. When omitted python-dotenv searches
            for one starting from the working directory.

    Raises:
        ConfigurationError: Merchant address missing, or any value invalid.
    """
    if env_path is not None:
        env_path = Path(env_path)
        if not env_path.exists():
            raise ConfigurationError(f"Config path does not exist: {env_path}")
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()

    merchant = _get("X402_RECEIVER_ADDRESS") or _get("X402_MERCHANT_ADDRESS")
    if not merchant:
        raise ConfigurationError(
            "X402_RECEIVER_ADDRESS (or X402_MERCHANT_ADDRESS) must be set"
        )

    try:
        mode = VerificationMode.from_string(_get("X402_MODE", VerificationMode.LOCAL.value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    max_age = _get_int("X402_MAX_CHALLENGE_AGE", DEFAULT_MAX_CHALLENGE_AGE)

    authority = None
    authority_name = _get("X402_WAAS_PROVIDER")
    if authority_name:
        authority_name = authority_name.lower()
        authority = create_authority(authority_name, **_authority_options(authority_name))

    if mode == VerificationMode.DELEGATED and authority is None:
        logger.warning("Delegated mode requested without X402_WAAS_PROVIDER; verifying locally")

    try:
        return PaymentConfig(
            merchant_address=merchant,
            chain_id=_get_int("X402_CHAIN_ID", DEFAULT_CHAIN_ID),
            currency=_get("X402_CURRENCY", DEFAULT_CURRENCY),
            mode=mode,
            authority=authority,
            authority_name=authority_name,
            max_challenge_age=max_age if max_age > 0 else None,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid payment configuration: {e}") from e
