"""
Thin async HTTP client for the radiko endpoints.

Owns one aiohttp session per recording and converts transport failures into
``TransportError`` so callers only deal with the application's own exceptions.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp

from radiko_recorder.exceptions import TransportError
from radiko_recorder.models.config import ProviderConfig

log = logging.getLogger(__name__)


class RadikoAPIClient:
    """
    Async client shared by the handshake, the manifest resolver and the
    segment fetcher of a single recording.

    Nothing here retries; retry policy belongs to the caller.
    """

    def __init__(
        self,
        provider: Optional[ProviderConfig] = None,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initializes the API client.

        Args:
            provider: Endpoints, secret and fixed headers. Defaults to radiko.jp.
            timeout: Total timeout in seconds applied to every request.
            session: An externally owned session to reuse (it is not closed here).
        """
        self.provider = provider or ProviderConfig()
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.provider.user_agent,
                    "Accept": "*/*",
                    "Pragma": "no-cache",
                    "Cache-Control": "no-cache",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RadikoAPIClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def auth_headers(self, token: str) -> dict[str, str]:
        """Headers carrying the session token on post-handshake requests."""
        return {self.provider.token_header: token}

    @asynccontextmanager
    async def get(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """
        Issues a GET request and yields the open response.

        Reading the body inside the ``async with`` block is covered too: a
        connection drop mid-body surfaces as ``TransportError``. Cancellation is
        never wrapped.
        """
        await self._initialize_session()
        try:
            async with self._session.get(
                url, headers=headers, params=params, allow_redirects=True
            ) as response:
                log.debug(f"GET {url} -> HTTP {response.status}")
                yield response
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Request to {url} failed: {e!r}")
            raise TransportError(url, e) from e
