"""
Handles the low-level retrieval of HLS media segments over HTTP, streaming
each one into a single output sink in playlist order.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Optional

from radiko_recorder.exceptions import (
    EmptySegmentList,
    RecordingCancelled,
    SegmentFetchFailed,
)
from radiko_recorder.models.stats import RecordingStats

if TYPE_CHECKING:
    from radiko_recorder.api.auth import AuthSession
    from radiko_recorder.api.client import RadikoAPIClient
    from radiko_recorder.core.retry import RetryPolicy
    from radiko_recorder.utils.structured_logger import LogSink

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SegmentFetcher:
    """
    Downloads segments one after another and concatenates them into a sink.

    The sink is any object with an async ``write(bytes)``; an ``aiofiles``
    handle is what the orchestrator passes. When the sink is seekable, a
    retried segment is rewound so its bytes are never written twice.
    """

    CHUNK_SIZE = 65536  # 64 KB

    def __init__(
        self,
        api_client: "RadikoAPIClient",
        auth: "AuthSession",
        progress_interval: int = 10,
        on_progress: Optional[ProgressCallback] = None,
        retry_policy: Optional["RetryPolicy"] = None,
        cancel_event: Optional[asyncio.Event] = None,
        stats: Optional[RecordingStats] = None,
        logger: Optional["LogSink"] = None,
    ):
        self._api_client = api_client
        self._auth = auth
        self.progress_interval = max(1, progress_interval)
        self._on_progress = on_progress
        self._retry_policy = retry_policy
        self._cancel_event = cancel_event
        self.stats = stats or RecordingStats()
        self._log = logger or log

    async def fetch_and_store(
        self, segments: Sequence[str], sink: Any, start_index: int = 0
    ) -> int:
        """
        Retrieves every segment in order and writes it to ``sink``.

        ``start_index`` continues the numbering of an earlier batch written to
        the same sink (live recordings fetch in several batches).

        Returns:
            Total number of bytes written.

        Raises:
            EmptySegmentList: If ``segments`` is empty.
            SegmentFetchFailed: On the first segment answering non-200. Bytes
                of earlier segments stay in the sink.
            RecordingCancelled: If the cancellation event is set.
            TransportError: On network failures.
        """
        if not segments:
            raise EmptySegmentList()

        token = self._auth.require_token()
        total = start_index + len(segments)
        self.stats.segments_total = total
        bytes_written = 0

        for index, url in enumerate(segments, start=start_index):
            self._check_cancelled(index)
            size = await self._store_segment(index, url, token.value, sink)
            bytes_written += size
            self.stats.record_segment(size)

            completed = index + 1
            if completed % self.progress_interval == 0 or completed == total:
                self._report_progress(completed, total)

        return bytes_written

    def _check_cancelled(self, index: int) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RecordingCancelled(f"Cancelled before segment {index}")

    def _report_progress(self, completed: int, total: int) -> None:
        self._log.info(f"{completed}/{total} segments completed")
        if self._on_progress:
            self._on_progress(completed, total)

    async def _store_segment(self, index: int, url: str, token: str, sink: Any) -> int:
        start_offset = await sink.tell() if hasattr(sink, "tell") else None

        async def attempt() -> int:
            if start_offset is not None and hasattr(sink, "truncate"):
                await sink.seek(start_offset)
                await sink.truncate()
            return await self._stream_segment(index, url, token, sink)

        if self._retry_policy is None:
            return await attempt()
        return await self._retry_policy.run(f"segment {index}", attempt)

    async def _stream_segment(self, index: int, url: str, token: str, sink: Any) -> int:
        self._check_cancelled(index)
        written = 0
        async with self._api_client.get(
            url, headers=self._api_client.auth_headers(token)
        ) as response:
            if response.status != 200:
                raise SegmentFetchFailed(index, response.status, url)
            async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                await sink.write(chunk)
                written += len(chunk)
        self._log.debug(f"Segment {index} stored ({written} bytes)")
        return written
