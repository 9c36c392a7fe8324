"""
HLS manifest parsing and recursive resolution into a flat list of segment URLs.
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlsplit, urlunsplit

from radiko_recorder.exceptions import ManifestFetchFailed, RecordingCancelled
from radiko_recorder.models.config import ProviderConfig
from radiko_recorder.models.request import to_radiko_time

if TYPE_CHECKING:
    from radiko_recorder.core.retry import RetryPolicy
    from radiko_recorder.utils.structured_logger import LogSink

    from .auth import AuthSession
    from .client import RadikoAPIClient

log = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".m3u8"
DIRECTIVE_MARKER = "#"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


class EntryKind(Enum):
    MANIFEST = "manifest"
    SEGMENT = "segment"


@dataclass(frozen=True)
class ManifestEntry:
    """A non-directive line of a manifest, resolved to an absolute URL."""

    kind: EntryKind
    url: str


def resolve_reference(reference: str, manifest_url: str) -> str:
    """
    Makes a manifest reference absolute against the referencing manifest's
    directory. Absolute URLs are returned untouched.
    """
    if _SCHEME_RE.match(reference):
        return reference
    return urljoin(manifest_url, reference)


def parse_manifest(body: str, manifest_url: str) -> list[ManifestEntry]:
    """
    Classifies every entry line of a manifest, in line order.

    Blank lines and directive lines (starting with ``#``) are skipped.
    """
    entries = []
    for line in body.splitlines():
        line = line.strip()
        if not line or line.startswith(DIRECTIVE_MARKER):
            continue
        url = resolve_reference(line, manifest_url)
        if urlparse(url).path.endswith(MANIFEST_SUFFIX):
            entries.append(ManifestEntry(EntryKind.MANIFEST, url))
        else:
            entries.append(ManifestEntry(EntryKind.SEGMENT, url))
    return entries


def build_playlist_url(
    provider: ProviderConfig,
    station_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> str:
    """
    Builds the timefree playlist URL for a station and time window.

    ``ft``/``to`` are sent in Japan time; naive datetimes are taken as JST.
    """
    params = {"station_id": station_id}
    if start is not None:
        params["ft"] = to_radiko_time(start).strftime(TIMESTAMP_FORMAT)
    if end is not None:
        params["to"] = to_radiko_time(end).strftime(TIMESTAMP_FORMAT)
    return f"{provider.timefree_playlist_url}?{urlencode(params)}"


def build_live_playlist_url(
    provider: ProviderConfig, station_id: str, nonce: Optional[str] = None
) -> str:
    """
    Builds the live playlist URL. The ``lsid`` nonce differs on every call so
    the provider never answers with a cached manifest.
    """
    params = {
        "station_id": station_id,
        "l": "15",
        "lsid": nonce or uuid.uuid4().hex,
        "type": "b",
    }
    return f"{provider.live_playlist_url}?{urlencode(params)}"


def refresh_live_nonce(url: str, nonce: Optional[str] = None) -> str:
    """Returns ``url`` with a new ``lsid``; other query parameters are kept."""
    parts = urlsplit(url)
    params = [(k, v) for k, v in parse_qsl(parts.query) if k != "lsid"]
    params.append(("lsid", nonce or uuid.uuid4().hex))
    return urlunsplit(parts._replace(query=urlencode(params)))


class ManifestResolver:
    """
    Resolves a (possibly nested) HLS manifest into its ordered media segments.

    Sub-manifests are expanded depth-first at the point they are referenced.
    """

    def __init__(
        self,
        api_client: "RadikoAPIClient",
        auth: "AuthSession",
        max_depth: int = 5,
        retry_policy: Optional["RetryPolicy"] = None,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional["LogSink"] = None,
    ):
        self._api_client = api_client
        self._auth = auth
        self.max_depth = max_depth
        self._retry_policy = retry_policy
        self._cancel_event = cancel_event
        self._log = logger or log

    async def resolve_segments(self, playlist_url: str) -> list[str]:
        """
        Fetches ``playlist_url`` and returns every segment URL it leads to.

        Returns an empty list when the manifest has no entries; deciding
        whether that is an error is left to the caller.

        Raises:
            NotAuthenticated: If the handshake has not completed.
            ManifestFetchFailed: On a non-200 manifest or a chain deeper than
                ``max_depth``.
            TransportError: On network failures.
        """
        token = self._auth.require_token()
        segments = await self._resolve(playlist_url, token.value, depth=0)
        self._log.debug(f"Resolved {len(segments)} segments from {playlist_url}")
        return segments

    async def _resolve(self, url: str, token: str, depth: int) -> list[str]:
        if depth > self.max_depth:
            raise ManifestFetchFailed(
                url, reason=f"maximum manifest depth ({self.max_depth}) exceeded"
            )

        body = await self._fetch(url, token)
        segments: list[str] = []
        for entry in parse_manifest(body, url):
            if entry.kind is EntryKind.MANIFEST:
                segments.extend(await self._resolve(entry.url, token, depth + 1))
            else:
                segments.append(entry.url)
        return segments

    async def _fetch(self, url: str, token: str) -> str:
        async def attempt() -> str:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise RecordingCancelled(f"Cancelled before fetching manifest {url}")
            async with self._api_client.get(
                url, headers=self._api_client.auth_headers(token)
            ) as r:
                if r.status != 200:
                    raise ManifestFetchFailed(url, status=r.status)
                return await r.text(encoding="utf-8", errors="replace")

        if self._retry_policy is None:
            body = await attempt()
        else:
            body = await self._retry_policy.run(f"manifest {url}", attempt)
        self._log.debug(f"Fetched manifest {url} ({len(body)} bytes)")
        return body
