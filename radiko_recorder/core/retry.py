"""
Per-step retry with exponential backoff, applied by the orchestrator.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from radiko_recorder.exceptions import TransportError

log = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Retries one logical step (a handshake attempt, a manifest fetch, a segment)
    on transient failures.

    Transient means a transport error, or an application error carrying an
    HTTP ``status`` of 429 or 5xx. Everything else propagates immediately.
    """

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.5):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        if isinstance(error, TransportError):
            return True
        status = getattr(error, "status", None)
        return isinstance(status, int) and (status == 429 or status >= 500)

    async def run(self, step: str, func: Callable[[], Awaitable[T]]) -> T:
        """Runs ``func`` until it succeeds, fails permanently, or attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func()
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    raise
                delay = self.base_delay * (2 ** (attempt - 1))
                log.debug(
                    f"{step}: attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")
