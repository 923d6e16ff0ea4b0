"""
Client-side signers.

A signer is any callable taking a ``PaymentChallenge`` and returning a
``PaymentAssertion`` (or a mapping with the same fields), directly or as an
awaitable. ``None`` means the user declined or signing was impossible.
"""

import logging
from typing import Awaitable, Callable, Mapping, Optional, Union

from eth_account import Account

from ..adapters.bases import VerificationAuthority
from ..adapters.evm.signatures import sign_payment_challenge
from ..adapters.evm.verifies import encode_payment_message
from ..schemas.payments import PaymentAssertion, PaymentChallenge

logger = logging.getLogger(__name__)

SignerResult = Optional[Union[PaymentAssertion, Mapping]]
Signer = Callable[[PaymentChallenge], Union[SignerResult, Awaitable[SignerResult]]]


class LocalSigner:
    """Signs challenges with a private key held in this process."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def __call__(self, challenge: PaymentChallenge) -> PaymentAssertion:
        logger.debug("Signing challenge price=%s for %s", challenge.price, self.address)
        return sign_payment_challenge(challenge, self._account.key)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"


class AuthoritySigner:
    """
    Signs challenges through a Verification Authority on behalf of a user.

    Args:
        authority: Authority holding the user's wallet.
        user_id: Identifier of the user at the authority.
    """

    def __init__(self, authority: VerificationAuthority, user_id: str):
        self.authority = authority
        self.user_id = user_id

    async def __call__(self, challenge: PaymentChallenge) -> Optional[PaymentAssertion]:
        address = await self.authority.get_wallet_address(self.user_id)
        if not address:
            logger.warning("No wallet found for user %s at %r", self.user_id, self.authority)
            return None
        signature = await self.authority.sign_payment(challenge, self.user_id)
        if not signature:
            logger.warning("Authority %r did not sign for user %s", self.authority, self.user_id)
            return None
        return PaymentAssertion(
            signature=signature,
            signer=address,
            challenge=challenge,
            message_hash=encode_payment_message(challenge),
        )
