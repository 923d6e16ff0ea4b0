"""
HTTP 402 Payment Flow Client

Provides an httpx client that transparently answers 402 Payment Required
challenges by signing them and retrying the original request once.
"""

from typing import Optional

import httpx

from .signers import Signer
from .transport import RetryingTransport


class Http402Client(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient with automatic 402 payment handling.

    Every request (``get``, ``post``, ``stream``, ``send``...) goes through a
    ``RetryingTransport``: on a 402 with a challenge the configured signer
    is asked for an assertion and the request is sent once more with the
    ``X-PAYMENT`` header. Timeouts and other options are httpx's own.

    Usage:
        ```python
        async with Http402Client(signer=LocalSigner(private_key)) as client:
            response = await client.get("https://api.example.com/data")
        ```
    """

    def __init__(self, signer: Optional[Signer] = None, **kwargs):
        """
        Args:
            signer: Callable turning a ``PaymentChallenge`` into a ``PaymentAssertion``
            **kwargs: All standard httpx.AsyncClient arguments (timeout, headers, etc.)
        """
        super().__init__(**kwargs)
        self._signer = signer

    @property
    def signer(self) -> Optional[Signer]:
        return self._signer

    def set_signer(self, signer: Optional[Signer]) -> None:
        """Replace the signer used for subsequent requests."""
        self._signer = signer

    # =========================================================================
    # Override httpx.AsyncClient.send to add 402 handling
    # =========================================================================

    async def send(self, request: httpx.Request, **kwargs) -> httpx.Response:
        """
        Send a request, paying for it if the server asks.

        Raises:
            ConfigurationError: Challenged while no signer is set.
            PaymentSigningFailedError: The signer declined.
        """
        parent_send = super().send

        async def execute(outgoing: httpx.Request) -> httpx.Response:
            return await parent_send(outgoing, **kwargs)

        return await RetryingTransport(execute, self._signer).perform(request)
