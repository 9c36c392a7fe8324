import asyncio
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from radiko_recorder.api.auth import AuthSession
from radiko_recorder.api.playlist import (
    EntryKind,
    ManifestResolver,
    build_live_playlist_url,
    build_playlist_url,
    parse_manifest,
    refresh_live_nonce,
    resolve_reference,
)
from radiko_recorder.core.retry import RetryPolicy
from radiko_recorder.exceptions import (
    ManifestFetchFailed,
    NotAuthenticated,
    RecordingCancelled,
)
from radiko_recorder.models.config import ProviderConfig

from .conftest import TOKEN

PLAYLIST = "/v2/api/ts/playlist.m3u8"


def test_parse_manifest_classifies_entries():
    body = (
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        "\n"
        "chunklist.m3u8\n"
        "#EXTINF:5,\n"
        "https://media.example.com/a/seg1.aac\n"
        "  seg2.aac?token=x.m3u8  \n"
    )
    entries = parse_manifest(body, "https://radiko.example.com/hls/index.m3u8")

    assert [e.kind for e in entries] == [
        EntryKind.MANIFEST,
        EntryKind.SEGMENT,
        EntryKind.SEGMENT,
    ]
    assert entries[0].url == "https://radiko.example.com/hls/chunklist.m3u8"
    assert entries[1].url == "https://media.example.com/a/seg1.aac"
    assert entries[2].url == "https://radiko.example.com/hls/seg2.aac?token=x.m3u8"


def test_parse_manifest_without_entries():
    assert parse_manifest("#EXTM3U\n#EXT-X-ENDLIST\n", "https://x/p.m3u8") == []
    assert parse_manifest("", "https://x/p.m3u8") == []


def test_resolve_reference_against_manifest_directory():
    base = "https://radiko.example.com/live/TBS/playlist.m3u8?lsid=abc"
    assert resolve_reference("seg.aac", base) == "https://radiko.example.com/live/TBS/seg.aac"
    assert resolve_reference("/root.aac", base) == "https://radiko.example.com/root.aac"
    assert resolve_reference("http://other/seg.aac", base) == "http://other/seg.aac"


def test_build_playlist_url():
    provider = ProviderConfig()
    url = build_playlist_url(
        provider, "TBS", datetime(2024, 6, 7, 20, 0), datetime(2024, 6, 7, 21, 0)
    )

    parsed = urlparse(url)
    assert url.startswith(provider.timefree_playlist_url)
    assert parse_qs(parsed.query) == {
        "station_id": ["TBS"],
        "ft": ["20240607200000"],
        "to": ["20240607210000"],
    }


def test_build_live_playlist_url_uses_fresh_nonce():
    provider = ProviderConfig()
    first = parse_qs(urlparse(build_live_playlist_url(provider, "FMJ")).query)
    second = parse_qs(urlparse(build_live_playlist_url(provider, "FMJ")).query)

    assert first["station_id"] == ["FMJ"]
    assert first["type"] == ["b"]
    assert first["lsid"] != second["lsid"]


def test_build_live_playlist_url_with_explicit_nonce():
    url = build_live_playlist_url(ProviderConfig(), "FMJ", nonce="fixed")
    assert "lsid=fixed" in url


def test_build_playlist_url_sends_japan_time():
    url = build_playlist_url(
        ProviderConfig(),
        "TBS",
        datetime(2024, 6, 7, 11, 0, tzinfo=timezone.utc),
        datetime(2024, 6, 7, 12, 0, tzinfo=timezone.utc),
    )

    query = parse_qs(urlparse(url).query)
    assert query["ft"] == ["20240607200000"]
    assert query["to"] == ["20240607210000"]


def test_refresh_live_nonce_keeps_other_parameters():
    url = build_live_playlist_url(ProviderConfig(), "FMJ", nonce="first")

    refreshed = refresh_live_nonce(url, nonce="second")
    query = parse_qs(urlparse(refreshed).query)

    assert refreshed.split("?")[0] == url.split("?")[0]
    assert query["lsid"] == ["second"]
    assert query["station_id"] == ["FMJ"]
    assert query["type"] == ["b"]
    assert refresh_live_nonce(url) != refresh_live_nonce(url)


async def test_nested_manifests_resolve_depth_first(api_client, auth, fake, base_url):
    fake.add(
        PLAYLIST,
        f"#EXTM3U\nsub1.m3u8\n{base_url}/media/seg1.aac\n",
    )
    fake.add(
        "/v2/api/ts/sub1.m3u8",
        f"#EXTM3U\n#EXTINF:5,\n{base_url}/media/seg2.aac\n"
        f"#EXTINF:5,\n{base_url}/media/seg3.aac\n",
    )

    resolver = ManifestResolver(api_client, auth)
    segments = await resolver.resolve_segments(f"{base_url}{PLAYLIST}")

    assert segments == [
        f"{base_url}/media/seg2.aac",
        f"{base_url}/media/seg3.aac",
        f"{base_url}/media/seg1.aac",
    ]


async def test_relative_references_follow_the_referencing_manifest(
    api_client, auth, fake, base_url
):
    fake.add(PLAYLIST, "#EXTM3U\nnested/chunks.m3u8\n")
    fake.add("/v2/api/ts/nested/chunks.m3u8", "#EXTM3U\nseg1.aac\nseg2.aac\n")

    resolver = ManifestResolver(api_client, auth)
    segments = await resolver.resolve_segments(f"{base_url}{PLAYLIST}")

    assert segments == [
        f"{base_url}/v2/api/ts/nested/seg1.aac",
        f"{base_url}/v2/api/ts/nested/seg2.aac",
    ]


async def test_manifest_requests_carry_session_token(api_client, auth, fake, base_url):
    fake.add(PLAYLIST, "#EXTM3U\n")

    await ManifestResolver(api_client, auth).resolve_segments(f"{base_url}{PLAYLIST}")

    assert fake.headers_for(PLAYLIST)["X-Radiko-AuthToken"] == TOKEN


async def test_empty_manifest_yields_no_segments(api_client, auth, fake, base_url):
    fake.add(PLAYLIST, "#EXTM3U\n#EXT-X-ENDLIST\n")

    segments = await ManifestResolver(api_client, auth).resolve_segments(
        f"{base_url}{PLAYLIST}"
    )

    assert segments == []


async def test_requires_authentication(api_client, fake, base_url):
    resolver = ManifestResolver(api_client, AuthSession(api_client))

    with pytest.raises(NotAuthenticated):
        await resolver.resolve_segments(f"{base_url}{PLAYLIST}")

    assert fake.paths_requested(PLAYLIST) == 0


async def test_missing_manifest(api_client, auth, base_url):
    url = f"{base_url}{PLAYLIST}"

    with pytest.raises(ManifestFetchFailed) as exc_info:
        await ManifestResolver(api_client, auth).resolve_segments(url)

    assert exc_info.value.url == url
    assert exc_info.value.status == 404


async def test_missing_sub_manifest_reports_its_url(api_client, auth, fake, base_url):
    fake.add(PLAYLIST, "#EXTM3U\ngone.m3u8\n")

    with pytest.raises(ManifestFetchFailed) as exc_info:
        await ManifestResolver(api_client, auth).resolve_segments(
            f"{base_url}{PLAYLIST}"
        )

    assert exc_info.value.url == f"{base_url}/v2/api/ts/gone.m3u8"


async def test_self_referencing_manifest_hits_depth_limit(
    api_client, auth, fake, base_url
):
    fake.add("/loop/playlist.m3u8", "#EXTM3U\nplaylist.m3u8\n")
    resolver = ManifestResolver(api_client, auth, max_depth=3)

    with pytest.raises(ManifestFetchFailed) as exc_info:
        await resolver.resolve_segments(f"{base_url}/loop/playlist.m3u8")

    assert exc_info.value.status is None
    assert "depth" in exc_info.value.reason
    assert fake.paths_requested("/loop/playlist.m3u8") == 4


async def test_transient_manifest_failure_is_retried(api_client, auth, fake, base_url):
    fake.add(PLAYLIST, "#EXTM3U\nseg.aac\n")
    fake.fail(PLAYLIST, 503)
    resolver = ManifestResolver(
        api_client, auth, retry_policy=RetryPolicy(max_attempts=2, base_delay=0)
    )

    segments = await resolver.resolve_segments(f"{base_url}{PLAYLIST}")

    assert segments == [f"{base_url}/v2/api/ts/seg.aac"]
    assert fake.paths_requested(PLAYLIST) == 2


async def test_cancelled_before_fetch(api_client, auth, fake, base_url):
    fake.add(PLAYLIST, "#EXTM3U\nseg.aac\n")
    cancel = asyncio.Event()
    cancel.set()
    resolver = ManifestResolver(api_client, auth, cancel_event=cancel)

    with pytest.raises(RecordingCancelled):
        await resolver.resolve_segments(f"{base_url}{PLAYLIST}")

    assert fake.paths_requested(PLAYLIST) == 0
