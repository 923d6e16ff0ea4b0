"""
Abstract Base Classes for Verification Authorities

Defines the capability interface a delegated signing/verification
authority (wallet-as-a-service provider, custodial signer, ...) must
satisfy. Concrete authorities are selected at configuration time by name
through ``adapters.registry``.

Core Classes:
    - VerificationAuthority: verify payments, resolve user wallets, sign on a user's behalf
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.payments import PaymentChallenge, VerificationResult


class VerificationAuthority(ABC):
    """
    Abstract Base Class for delegated verification and signing.

    In delegated mode the server hands the whole verification decision to
    an authority and returns its result unchanged. The same authority can
    also act for a client: resolving the wallet of an application user and
    signing challenges with it.

    Key Responsibilities:
    1. verify_payment: Decide whether a signature over a challenge is valid
    2. get_wallet_address: Resolve the wallet address of a user
    3. sign_payment: Sign a challenge on behalf of a user

    Example Implementation:
        class MyProviderAuthority(VerificationAuthority):
            async def verify_payment(self, challenge, signature, signer): ...
            async def get_wallet_address(self, user_id): ...
            async def sign_payment(self, challenge, user_id): ...
    """

    #: Name this authority is registered under.
    name: str = ""

    @abstractmethod
    async def verify_payment(
        self,
        challenge: PaymentChallenge,
        signature: str,
        signer: str,
    ) -> VerificationResult:
        """
        Verify that ``signer`` produced ``signature`` over ``challenge``.

        Args:
            challenge: The challenge embedded in the client's assertion
            signature: Hex-encoded signature
            signer: Claimed signer address

        Returns:
            VerificationResult: ``valid=True`` with the signer, or
            ``valid=False`` with a human-readable error.

        Raises:
            Should not raise for invalid payments; return a failed result instead.
        """
        pass

    @abstractmethod
    async def get_wallet_address(self, user_id: str) -> Optional[str]:
        """
        Resolve the wallet address held for ``user_id``.

        Returns:
            Optional[str]: Address, or ``None`` if the user has no wallet.
        """
        pass

    @abstractmethod
    async def sign_payment(self, challenge: PaymentChallenge, user_id: str) -> Optional[str]:
        """
        Sign ``challenge`` with the wallet held for ``user_id``.

        Returns:
            Optional[str]: Hex signature, or ``None`` if signing is not possible.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
