"""
Shared fixtures: a fake radiko provider served by aiohttp's test server.
"""

import asyncio

import pytest
from aiohttp import web

from radiko_recorder.api.auth import AuthSession
from radiko_recorder.api.client import RadikoAPIClient
from radiko_recorder.api.keys import derive_partial_key
from radiko_recorder.models.config import ProviderConfig

SECRET = "bcd151073c03b352e1ef2fd66c32209da9ca0afa"
TOKEN = "abc123def456ghi789jkl012"


class FakeRadiko:
    """
    In-memory stand-in for the radiko endpoints.

    ``files`` maps request paths to manifest/segment bodies; ``failures`` maps
    paths to a list of statuses returned (and consumed) before the real answer.
    """

    def __init__(self):
        self.auth1_headers = {
            "X-Radiko-AuthToken": TOKEN,
            "X-Radiko-KeyLength": "5",
            "X-Radiko-KeyOffset": "0",
        }
        self.auth2_body = "JP13,東京都,tokyo Japan\n"
        self.files: dict[str, bytes] = {}
        self.failures: dict[str, list[int]] = {}
        self.requests: list[tuple[str, dict]] = []
        self.sequences: dict[str, list[bytes]] = {}
        self.lsids: list[str] = []
        self.stall_sent = asyncio.Event()
        self.stall_release = asyncio.Event()

    def add(self, path: str, content: str | bytes) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.files[path] = content

    def add_sequence(self, path: str, *contents: str) -> None:
        """Serves each body once, in order, then keeps serving the last one."""
        self.sequences[path] = [c.encode("utf-8") for c in contents]

    def fail(self, path: str, *statuses: int) -> None:
        self.failures.setdefault(path, []).extend(statuses)

    def paths_requested(self, path: str) -> int:
        return sum(1 for p, _ in self.requests if p == path)

    def headers_for(self, path: str) -> dict:
        return next(h for p, h in reversed(self.requests) if p == path)

    def _pending_failure(self, path: str) -> int | None:
        pending = self.failures.get(path)
        return pending.pop(0) if pending else None

    async def handle_auth1(self, request: web.Request) -> web.Response:
        self.requests.append((request.path, request.headers.copy()))
        if status := self._pending_failure(request.path):
            return web.Response(status=status)
        return web.Response(text="please send partial key", headers=self.auth1_headers)

    async def handle_auth2(self, request: web.Request) -> web.Response:
        self.requests.append((request.path, request.headers.copy()))
        if status := self._pending_failure(request.path):
            return web.Response(status=status)
        expected_key = derive_partial_key(
            SECRET,
            int(self.auth1_headers.get("X-Radiko-KeyOffset", 0)),
            int(self.auth1_headers.get("X-Radiko-KeyLength", 1)),
        )
        if (
            request.headers.get("X-Radiko-AuthToken") != TOKEN
            or request.headers.get("X-Radiko-Partialkey") != expected_key
        ):
            return web.Response(status=401)
        return web.Response(text=self.auth2_body)

    async def handle_file(self, request: web.Request) -> web.Response:
        self.requests.append((request.path, request.headers.copy()))
        if request.headers.get("X-Radiko-AuthToken") != TOKEN:
            return web.Response(status=403)
        if status := self._pending_failure(request.path):
            return web.Response(status=status)
        if "lsid" in request.query:
            self.lsids.append(request.query["lsid"])
        pending = self.sequences.get(request.path)
        if pending:
            body = pending.pop(0) if len(pending) > 1 else pending[0]
            return web.Response(body=body)
        if request.path not in self.files:
            return web.Response(status=404)
        return web.Response(body=self.files[request.path])

    async def handle_stall(self, request: web.Request) -> web.StreamResponse:
        """Sends the first 100 of 1000 promised bytes, then stops."""
        response = web.StreamResponse()
        response.content_length = 1000
        await response.prepare(request)
        await response.write(b"\x00" * 100)
        self.stall_sent.set()
        await self.stall_release.wait()
        return response

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/v2/api/auth1", self.handle_auth1)
        app.router.add_get("/v2/api/auth2", self.handle_auth2)
        app.router.add_get("/stall/{name}", self.handle_stall)
        app.router.add_get("/{tail:.*}", self.handle_file)
        return app


class MemorySink:
    """Async, non-seekable sink collecting written bytes."""

    def __init__(self):
        self.data = bytearray()
        self.writes = 0

    async def write(self, chunk: bytes) -> None:
        self.data.extend(chunk)
        self.writes += 1


@pytest.fixture
def fake() -> FakeRadiko:
    return FakeRadiko()


@pytest.fixture
async def provider_server(aiohttp_server, fake):
    return await aiohttp_server(fake.make_app())


@pytest.fixture
def base_url(provider_server) -> str:
    return f"http://{provider_server.host}:{provider_server.port}"


@pytest.fixture
def provider(base_url) -> ProviderConfig:
    return ProviderConfig(
        auth1_url=f"{base_url}/v2/api/auth1",
        auth2_url=f"{base_url}/v2/api/auth2",
        timefree_playlist_url=f"{base_url}/v2/api/ts/playlist.m3u8",
        live_playlist_url=f"{base_url}/so/playlist.m3u8",
    )


@pytest.fixture
async def api_client(provider):
    client = RadikoAPIClient(provider, timeout=5)
    yield client
    await client.close()


@pytest.fixture
async def auth(api_client) -> AuthSession:
    session = AuthSession(api_client)
    await session.authenticate()
    return session
