"""
Retrieval strategies: segment-by-segment download or delegation to ffmpeg.

They all sit behind the same ``Retriever`` interface so the orchestrator picks one
at run time instead of branching on the retrieval path.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import aiofiles

from radiko_recorder.api.playlist import refresh_live_nonce
from radiko_recorder.exceptions import EmptySegmentList, RecordingCancelled
from radiko_recorder.media.downloader import SegmentFetcher
from radiko_recorder.media.encoder import ExternalEncoder

if TYPE_CHECKING:
    from radiko_recorder.api.auth import AuthSession
    from radiko_recorder.api.client import RadikoAPIClient
    from radiko_recorder.api.playlist import ManifestResolver

log = logging.getLogger(__name__)


class Retriever(ABC):
    """Turns a top-level stream URL into a recording on disk."""

    name: str = ""

    @abstractmethod
    async def retrieve(
        self, stream_url: str, output_path: Path, duration_minutes: int
    ) -> Path:
        """Records the stream into ``output_path`` and returns it."""


class SegmentRetriever(Retriever):
    """Resolves the manifest tree and concatenates the raw segments."""

    name = "segments"

    def __init__(self, resolver: "ManifestResolver", fetcher: SegmentFetcher):
        self.resolver = resolver
        self.fetcher = fetcher

    async def retrieve(
        self, stream_url: str, output_path: Path, duration_minutes: int
    ) -> Path:
        segments = await self.resolver.resolve_segments(stream_url)
        if not segments:
            raise EmptySegmentList()
        log.info(f"Downloading {len(segments)} segments...")

        async with aiofiles.open(output_path, "wb") as sink:
            await self.fetcher.fetch_and_store(segments, sink)
        return output_path


class LiveSegmentRetriever(SegmentRetriever):
    """
    Records a live stream by polling its rolling playlist until the requested
    duration has elapsed.

    Each poll asks for the playlist with a fresh ``lsid``, and only segments
    not seen in an earlier poll are appended to the output.
    """

    name = "segments-live"

    def __init__(
        self,
        resolver: "ManifestResolver",
        fetcher: SegmentFetcher,
        poll_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(resolver, fetcher)
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep

    async def retrieve(
        self, stream_url: str, output_path: Path, duration_minutes: int
    ) -> Path:
        deadline = self.clock() + duration_minutes * 60
        seen: set[str] = set()
        stored = 0
        playlist_url = stream_url
        log.info(f"Recording live for {duration_minutes} minutes...")

        async with aiofiles.open(output_path, "wb") as sink:
            while True:
                segments = await self.resolver.resolve_segments(playlist_url)
                fresh = [url for url in segments if url not in seen]
                if fresh:
                    await self.fetcher.fetch_and_store(fresh, sink, start_index=stored)
                    seen.update(fresh)
                    stored += len(fresh)
                else:
                    log.debug("No new live segments in this poll")

                remaining = deadline - self.clock()
                if remaining <= 0:
                    break
                await self.sleep(min(self.poll_interval, remaining))
                playlist_url = refresh_live_nonce(stream_url)

        if not stored:
            raise EmptySegmentList()
        return output_path


class EncoderRetriever(Retriever):
    """Hands the top-level URL and session header to an external encoder."""

    name = "ffmpeg"

    def __init__(
        self,
        encoder: ExternalEncoder,
        api_client: "RadikoAPIClient",
        auth: "AuthSession",
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.encoder = encoder
        self._api_client = api_client
        self._auth = auth
        self._cancel_event = cancel_event

    async def retrieve(
        self, stream_url: str, output_path: Path, duration_minutes: int
    ) -> Path:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RecordingCancelled("Cancelled before starting ffmpeg")
        token = self._auth.require_token()
        headers = self._api_client.auth_headers(token.value)
        log.info(f"Recording with ffmpeg for {duration_minutes} minutes...")
        return await self.encoder.encode(
            stream_url, headers, duration_minutes, output_path
        )
