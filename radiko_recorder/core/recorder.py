"""
The orchestrator that turns a recording request into a file on disk:
authenticate once, resolve once, then retrieve with the selected strategy.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from radiko_recorder.api.auth import AuthSession, SessionToken
from radiko_recorder.api.client import RadikoAPIClient
from radiko_recorder.api.playlist import (
    ManifestResolver,
    build_live_playlist_url,
    build_playlist_url,
)
from radiko_recorder.exceptions import InvalidRequestError
from radiko_recorder.media.downloader import ProgressCallback, SegmentFetcher
from radiko_recorder.media.encoder import ExternalEncoder
from radiko_recorder.media.integrity import OutputIntegrityChecker
from radiko_recorder.models.config import ProviderConfig, RecorderConfig
from radiko_recorder.models.request import RecordingRequest
from radiko_recorder.models.stats import RecordingStats
from radiko_recorder.utils.formatting import format_minutes, format_size
from radiko_recorder.utils.path import create_dir
from radiko_recorder.utils.structured_logger import LogSink

from .retrievers import (
    EncoderRetriever,
    LiveSegmentRetriever,
    Retriever,
    SegmentRetriever,
)
from .retry import RetryPolicy

log = logging.getLogger(__name__)


class RecordingOrchestrator:
    """
    Coordinates one recording session.

    Each orchestrator owns its own HTTP client and ``AuthSession``; sessions
    are never shared between concurrent recordings.
    """

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        provider: Optional[ProviderConfig] = None,
        api_client: Optional[RadikoAPIClient] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional[LogSink] = None,
    ):
        self.config = config or RecorderConfig()
        self.api_client = api_client or RadikoAPIClient(
            provider, timeout=self.config.timeout
        )
        self.cancel_event = cancel_event
        self.on_progress = on_progress
        self._log = logger or log
        self.auth = AuthSession(self.api_client, logger=self._log)
        self.retry_policy = RetryPolicy(
            self.config.retry_attempts, self.config.retry_delay
        )
        self.stats = RecordingStats()

    async def __aenter__(self) -> "RecordingOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.api_client.close()

    async def authenticate(self) -> SessionToken:
        """
        Runs the handshake. A retried attempt always restarts from step 1.
        """
        return await self.retry_policy.run("handshake", self.auth.authenticate)

    def select_retriever(
        self, name: Optional[str] = None, live: bool = False
    ) -> Retriever:
        """
        Builds the retrieval strategy. ``auto`` prefers ffmpeg when it is
        installed and falls back to segment download otherwise.

        With ``live`` the segment strategy polls the rolling live playlist
        for the whole duration instead of fetching one manifest.
        """
        name = (name or self.config.retriever).lower()
        encoder = ExternalEncoder(self.config.ffmpeg_path, logger=self._log)
        if name == "auto":
            name = "ffmpeg" if encoder.is_available() else "segments"

        if name == "ffmpeg":
            return EncoderRetriever(
                encoder, self.api_client, self.auth, cancel_event=self.cancel_event
            )

        resolver = ManifestResolver(
            self.api_client,
            self.auth,
            max_depth=self.config.max_manifest_depth,
            retry_policy=self.retry_policy,
            cancel_event=self.cancel_event,
            logger=self._log,
        )
        fetcher = SegmentFetcher(
            self.api_client,
            self.auth,
            progress_interval=self.config.progress_interval,
            on_progress=self.on_progress,
            retry_policy=self.retry_policy,
            cancel_event=self.cancel_event,
            stats=self.stats,
            logger=self._log,
        )
        if live:
            return LiveSegmentRetriever(
                resolver, fetcher, poll_interval=self.config.live_poll_interval
            )
        return SegmentRetriever(resolver, fetcher)

    def stream_url_for(self, request: RecordingRequest) -> str:
        """Top-level playlist URL: timefree window, or live with a fresh nonce."""
        provider = self.api_client.provider
        if request.is_live:
            return build_live_playlist_url(provider, request.station_id)
        return build_playlist_url(
            provider, request.station_id, request.start_time, request.end_time
        )

    async def resolve_and_fetch(
        self, request: RecordingRequest, retriever: Optional[Retriever] = None
    ) -> Path:
        """
        Performs a complete recording.

        Returns:
            The path of the recorded file.

        Raises:
            RecorderError subclasses describing the failing step. A partially
            written file is left in place.
        """
        retriever = retriever or self.select_retriever(live=request.is_live)
        if request.is_live and type(retriever) is SegmentRetriever:
            raise InvalidRequestError(
                "A live recording cannot be taken from a single manifest; "
                "use the live segment retriever or ffmpeg."
            )
        if not self.auth.is_authenticated:
            await self.authenticate()

        self.stats.retriever = retriever.name
        stream_url = self.stream_url_for(request)
        output_path = Path(request.output_path)
        create_dir(output_path.parent)

        when = "live" if request.is_live else f"{request.start_time:%Y-%m-%d %H:%M}"
        self._log.info(
            f"Recording {request.station_id} ({when}, "
            f"{format_minutes(request.duration_minutes)}) via {retriever.name}"
        )
        self._log.debug(f"Stream URL: {stream_url}")

        await retriever.retrieve(stream_url, output_path, request.duration_minutes)
        self.stats.finish()

        size = OutputIntegrityChecker.require_non_empty(output_path)
        self.stats.bytes_written = size
        OutputIntegrityChecker.check_audio(output_path)
        self._log.info(f"Recording complete: {output_path} ({format_size(size)})")
        return output_path
