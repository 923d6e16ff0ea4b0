"""
Concrete Verification Authorities

- LocalAuthority: verifies by signature recovery and signs with in-process
  keys held per user. Useful for development, tests and custodial setups.
- PrivyAuthority: Privy wallet-as-a-service. Wallet lookup goes through
  Privy's REST API; verification is performed locally on the recovered
  signer, since Privy embedded wallets produce ordinary ECDSA signatures.
"""

import logging
from typing import Dict, Optional

import httpx
from eth_account import Account

from .bases import VerificationAuthority
from .evm.signatures import sign_payment_challenge
from .evm.verifies import encode_payment_message, verify_signature
from ..engine.exceptions import ConfigurationError
from ..schemas.payments import PaymentChallenge, VerificationResult

logger = logging.getLogger(__name__)


def _verify_locally(challenge: PaymentChallenge, signature: str, signer: str, error: str) -> VerificationResult:
    try:
        message_hash = encode_payment_message(challenge)
        if not verify_signature(signature, message_hash, signer):
            return VerificationResult.failure(error)
    except Exception as e:
        return VerificationResult.failure(str(e) or "Verification failed")
    return VerificationResult.success(signer)


class LocalAuthority(VerificationAuthority):
    """
    Authority backed by private keys held in this process.

    Args:
        wallets: Mapping of user id to hex private key.
    """

    name = "local"

    def __init__(self, wallets: Optional[Dict[str, str]] = None):
        self._accounts = {
            user_id: Account.from_key(private_key)
            for user_id, private_key in (wallets or {}).items()
        }

    def add_wallet(self, user_id: str, private_key: str) -> str:
        """Register a key for ``user_id`` and return its address."""
        account = Account.from_key(private_key)
        self._accounts[user_id] = account
        return account.address

    async def verify_payment(self, challenge, signature, signer) -> VerificationResult:
        return _verify_locally(challenge, signature, signer, "Invalid signature")

    async def get_wallet_address(self, user_id: str) -> Optional[str]:
        account = self._accounts.get(user_id)
        return account.address if account else None

    async def sign_payment(self, challenge: PaymentChallenge, user_id: str) -> Optional[str]:
        account = self._accounts.get(user_id)
        if account is None:
            logger.warning("No local wallet for user %s", user_id)
            return None
        return sign_payment_challenge(challenge, account.key).signature


class PrivyAuthority(VerificationAuthority):
    """
    Privy wallet-as-a-service authority.

    Args:
        app_id: Privy application id.
        app_secret: Privy application secret.
        base_url: Privy API root.
        http_client: Optional ``httpx.AsyncClient`` to reuse (and to mock in tests).
        request_timeout: Timeout (seconds) for the client created when none is given.
    """

    name = "privy"
    DEFAULT_BASE_URL = "https://auth.privy.io"

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = 30.0,
    ):
        if not app_id or not app_secret:
            raise ConfigurationError("Privy authority requires app_id and app_secret")
        self._app_id = app_id
        self._app_secret = app_secret
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._request_timeout = request_timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._app_secret}",
            "privy-app-id": self._app_id,
        }

    async def verify_payment(self, challenge, signature, signer) -> VerificationResult:
        return _verify_locally(challenge, signature, signer, "Invalid signature")

    async def get_wallet_address(self, user_id: str) -> Optional[str]:
        url = f"{self._base_url}/api/v1/users/{user_id}"
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self._request_timeout) as client:
                    response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error("Failed to get Privy wallet address for %s: %s", user_id, e)
            return None

        if not response.is_success:
            logger.warning("Privy user lookup for %s returned %s", user_id, response.status_code)
            return None

        try:
            wallets = response.json().get("wallets") or []
            return wallets[0].get("address") if wallets else None
        except (ValueError, AttributeError, TypeError) as e:
            logger.error("Unexpected Privy user payload for %s: %s", user_id, e)
            return None

    async def sign_payment(self, challenge: PaymentChallenge, user_id: str) -> Optional[str]:
        # Embedded-wallet signing happens in the user's browser through the Privy SDK.
        logger.info("Privy server-side signing unavailable for user %s", user_id)
        return None
