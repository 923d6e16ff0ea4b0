"""
Payment verification.

``VerificationEngine.verify`` decides whether an assertion pays for a
route. It never raises: every problem is reported as a failed
``VerificationResult`` whose ``error`` is safe to send to the client.

Checks, in order:
    1. payload shape (``signature``, ``signer``, ``challenge``)
    2. echoed challenge against the fields the server would issue
    3. challenge age and clock skew
    4. signature, locally or through the delegated authority
    5. replay of an already accepted payment header, when enabled
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from pydantic import ValidationError

from ..adapters.evm.verifies import encode_payment_message, verify_signature
from ..constants import (
    CHALLENGE_EXPIRED,
    CHALLENGE_FROM_FUTURE,
    DEFAULT_REPLAY_CACHE_SIZE,
    INVALID_HEADER_FORMAT,
    PAYMENT_ALREADY_USED,
    SIGNATURE_VERIFICATION_FAILED,
)
from ..engine.exceptions import (
    ChallengeExpiredError,
    ChallengeMismatchError,
    DelegatedAuthorityError,
    MalformedPaymentHeaderError,
    PaymentVerificationError,
    ReplayedPaymentError,
    SignatureVerificationError,
)
from ..schemas.payments import PaymentAssertion, PaymentChallenge, PaymentConfig, VerificationMode, VerificationResult

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("signature", "signer", "challenge")


class ConsumedPaymentCache:
    """
    In-memory record of accepted payments.

    Entries expire after ``ttl`` seconds; the oldest entries are evicted
    once ``max_size`` is reached. State is per process.
    """

    def __init__(
        self,
        ttl: Optional[float],
        max_size: int = DEFAULT_REPLAY_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[Hashable, float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        self._expire(self._clock())
        return key in self._entries

    def _expire(self, now: float) -> None:
        if self._ttl is None:
            return
        while self._entries:
            key, recorded_at = next(iter(self._entries.items()))
            if now - recorded_at <= self._ttl:
                break
            self._entries.popitem(last=False)

    def claim(self, key: Hashable) -> bool:
        """
        Record ``key`` as consumed.

        Returns:
            bool: False if ``key`` was already consumed and still remembered.
        """
        now = self._clock()
        self._expire(now)
        if key in self._entries:
            return False
        self._entries[key] = now
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
        return True


class VerificationEngine:
    """
    Verifies payment assertions against a ``PaymentConfig``.

    Args:
        config: Process-wide payment configuration.
        clock: Unix-seconds clock, injectable for tests.
        replay_cache: Shared cache; a private one is created when omitted.
    """

    def __init__(
        self,
        config: PaymentConfig,
        clock: Callable[[], float] = time.time,
        replay_cache: Optional[ConsumedPaymentCache] = None,
    ):
        self.config = config
        self._clock = clock
        if replay_cache is None and config.replay_protection:
            ttl = None
            if config.max_challenge_age is not None:
                ttl = config.max_challenge_age + config.max_clock_skew
            replay_cache = ConsumedPaymentCache(ttl=ttl, clock=clock)
        self._consumed = replay_cache

        if config.mode == VerificationMode.DELEGATED and not config.delegates:
            logger.warning("Delegated mode configured without an authority; verifying locally")

    @staticmethod
    def parse_assertion(payload: Any) -> PaymentAssertion:
        """
        Validate a decoded payment header.

        Raises:
            MalformedPaymentHeaderError: Missing fields or invalid values.
        """
        if not isinstance(payload, Mapping):
            raise MalformedPaymentHeaderError(INVALID_HEADER_FORMAT)
        if any(not payload.get(field) for field in REQUIRED_FIELDS):
            raise MalformedPaymentHeaderError(INVALID_HEADER_FORMAT)
        try:
            return PaymentAssertion.model_validate(dict(payload))
        except ValidationError as e:
            raise MalformedPaymentHeaderError(INVALID_HEADER_FORMAT) from e

    @staticmethod
    def check_expected(challenge: PaymentChallenge, expected: Mapping[str, Any]) -> None:
        """
        Raises:
            ChallengeMismatchError: On the first field that differs.
        """
        for field in ("price", "currency", "chain_id"):
            if field in expected and getattr(challenge, field) != expected[field]:
                raise ChallengeMismatchError(field)
        if "merchant" in expected and challenge.merchant.lower() != str(expected["merchant"]).lower():
            raise ChallengeMismatchError("merchant")

    def check_freshness(self, challenge: PaymentChallenge) -> None:
        """
        Raises:
            ChallengeExpiredError: Too old, or dated beyond the clock skew.
        """
        max_age = self.config.max_challenge_age
        if max_age is None:
            return
        now = self._clock()
        if challenge.timestamp > now + self.config.max_clock_skew:
            raise ChallengeExpiredError(CHALLENGE_FROM_FUTURE)
        if now - challenge.timestamp > max_age:
            raise ChallengeExpiredError(CHALLENGE_EXPIRED)

    @staticmethod
    def _verify_locally(assertion: PaymentAssertion, message_hash: str) -> VerificationResult:
        if not verify_signature(assertion.signature, message_hash, assertion.signer):
            raise SignatureVerificationError(SIGNATURE_VERIFICATION_FAILED, signer=assertion.signer)
        return VerificationResult.success(assertion.signer)

    async def _verify_delegated(self, assertion: PaymentAssertion) -> VerificationResult:
        try:
            return await self.config.authority.verify_payment(
                assertion.challenge, assertion.signature, assertion.signer
            )
        except Exception as e:
            raise DelegatedAuthorityError(str(e)) from e

    def _claim(self, message_hash: str, signer: str, nonce: Optional[str]) -> None:
        if self._consumed is None:
            return
        # Challenges issued in the same second share a digest; the nonce tells them apart.
        if not self._consumed.claim((message_hash.lower(), signer.lower(), nonce)):
            raise ReplayedPaymentError(PAYMENT_ALREADY_USED)

    async def verify(
        self,
        payload: Any,
        expected: Optional[Dict[str, Any]] = None,
    ) -> VerificationResult:
        """
        Verify a decoded ``X-PAYMENT`` payload.

        Args:
            payload: Decoded header, ``{signature, signer, challenge}``.
            expected: Fields the server would issue for this route, if known.

        Returns:
            VerificationResult: Never raises.
        """
        try:
            assertion = self.parse_assertion(payload)
        except MalformedPaymentHeaderError:
            logger.warning("Rejected payment: malformed header")
            return VerificationResult.failure(INVALID_HEADER_FORMAT)

        try:
            if expected:
                self.check_expected(assertion.challenge, expected)
            self.check_freshness(assertion.challenge)

            message_hash = encode_payment_message(assertion.challenge)

            if self.config.delegates:
                result = await self._verify_delegated(assertion)
            else:
                result = self._verify_locally(assertion, message_hash)

            if result.valid:
                self._claim(message_hash, result.signer or assertion.signer, assertion.challenge.nonce)
        except DelegatedAuthorityError as e:
            logger.warning("Delegated verification raised: %s", e)
            return VerificationResult.failure(f"Verification error: {e}")
        except PaymentVerificationError as e:
            logger.warning("Rejected payment from %s: %s", assertion.signer, e)
            return VerificationResult.failure(str(e))
        except Exception as e:
            logger.warning("Verification error for %s: %s", assertion.signer, e)
            return VerificationResult.failure(f"Verification error: {e}")

        if result.valid:
            logger.info("Payment verified for signer %s", result.signer)
        else:
            logger.warning("Rejected payment from %s: %s", assertion.signer, result.error)
        return result
