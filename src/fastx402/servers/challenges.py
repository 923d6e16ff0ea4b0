"""
Challenge issuance.

Route values win over the process-wide configuration, which wins over the
fixed defaults. The merchant always comes from the configuration.
"""

import logging
import time
from typing import Callable, Dict, Optional

from eth_utils import to_checksum_address

from ..adapters.evm.signatures import generate_nonce
from ..constants import DEFAULT_CHAIN_ID, DEFAULT_CURRENCY, NONCE_BYTES
from ..schemas.payments import PaymentChallenge, PaymentConfig, RouteConfig

logger = logging.getLogger(__name__)


def expected_challenge_fields(route_config: RouteConfig, config: PaymentConfig) -> Dict[str, object]:
    """
    Fields the server would put into a challenge for this route.

    Used by verification to reject echoed challenges that were altered.
    """
    currency = route_config.currency or config.currency or DEFAULT_CURRENCY
    chain_id = route_config.chain_id
    if chain_id is None:
        chain_id = config.chain_id if config.chain_id is not None else DEFAULT_CHAIN_ID
    return {
        "price": route_config.price,
        "currency": currency,
        "chain_id": chain_id,
        "merchant": to_checksum_address(config.merchant_address),
    }


def create_challenge(
    route_config: RouteConfig,
    config: PaymentConfig,
    *,
    now: Optional[Callable[[], float]] = None,
) -> PaymentChallenge:
    """
    Build a fresh challenge for a protected route.

    Args:
        route_config: Per-route price and overrides.
        config: Process-wide payment configuration.
        now: Clock returning unix seconds, ``time.time`` by default.

    Returns:
        PaymentChallenge: New challenge with current timestamp and random nonce.
    """
    clock = now or time.time
    fields = expected_challenge_fields(route_config, config)
    challenge = PaymentChallenge(
        **fields,
        timestamp=int(clock()),
        description=route_config.description,
        nonce=generate_nonce(NONCE_BYTES),
    )
    logger.debug(
        "Issued challenge price=%s currency=%s chain_id=%s",
        challenge.price, challenge.currency, challenge.chain_id,
    )
    return challenge
