import pytest

from radiko_recorder.api.auth import AuthSession, AuthState, SessionToken
from radiko_recorder.api.client import RadikoAPIClient
from radiko_recorder.exceptions import (
    HandshakeRejected,
    InvalidRange,
    MalformedCredential,
    MissingCredential,
    NotAuthenticated,
    TransportError,
)
from radiko_recorder.models.config import ProviderConfig

from .conftest import TOKEN

AUTH1 = "/v2/api/auth1"
AUTH2 = "/v2/api/auth2"


async def test_handshake_completes(api_client, fake):
    session = AuthSession(api_client)
    assert session.state is AuthState.UNAUTHENTICATED

    token = await session.authenticate()

    assert token.value == TOKEN
    assert session.state is AuthState.AUTHENTICATED
    assert session.require_token() is token
    assert session.area_id == "JP13"

    step2 = fake.headers_for(AUTH2)
    assert step2["X-Radiko-AuthToken"] == TOKEN
    assert step2["X-Radiko-Partialkey"] == "YmNkMTU="


async def test_first_step_sends_identification_headers(api_client, fake):
    await AuthSession(api_client).authenticate()

    step1 = fake.headers_for(AUTH1)
    assert step1["X-Radiko-App"] == "pc_html5"
    assert step1["X-Radiko-App-Version"] == "0.0.1"
    assert step1["X-Radiko-User"] == "dummy_user"
    assert step1["X-Radiko-Device"] == "pc"
    assert step1["User-Agent"].startswith("Mozilla/5.0")


async def test_first_step_rejected(api_client, fake):
    fake.fail(AUTH1, 403)
    session = AuthSession(api_client)

    with pytest.raises(HandshakeRejected) as exc_info:
        await session.authenticate()

    assert exc_info.value.stage == 1
    assert exc_info.value.status == 403
    assert session.state is AuthState.UNAUTHENTICATED
    assert fake.paths_requested(AUTH2) == 0


async def test_second_step_rejected_leaves_no_token(api_client, fake):
    fake.fail(AUTH2, 401)
    session = AuthSession(api_client)

    with pytest.raises(HandshakeRejected) as exc_info:
        await session.authenticate()

    assert exc_info.value.stage == 2
    assert exc_info.value.status == 401
    assert session.state is AuthState.UNAUTHENTICATED
    with pytest.raises(NotAuthenticated):
        session.require_token()


async def test_missing_token(api_client, fake):
    del fake.auth1_headers["X-Radiko-AuthToken"]

    with pytest.raises(MissingCredential) as exc_info:
        await AuthSession(api_client).authenticate()

    assert exc_info.value.field == "token"


async def test_missing_key_offset(api_client, fake):
    del fake.auth1_headers["X-Radiko-KeyOffset"]

    with pytest.raises(MissingCredential) as exc_info:
        await AuthSession(api_client).authenticate()

    assert exc_info.value.field == "keyoffset"


async def test_non_numeric_key_length(api_client, fake):
    fake.auth1_headers["X-Radiko-KeyLength"] = "five"

    with pytest.raises(MalformedCredential) as exc_info:
        await AuthSession(api_client).authenticate()

    assert exc_info.value.field == "keylength"
    assert exc_info.value.value == "five"
    assert fake.paths_requested(AUTH2) == 0


async def test_coordinates_outside_secret(api_client, fake):
    fake.auth1_headers["X-Radiko-KeyOffset"] = "100"
    session = AuthSession(api_client)

    with pytest.raises(InvalidRange):
        await session.authenticate()

    assert session.state is AuthState.UNAUTHENTICATED
    assert fake.paths_requested(AUTH2) == 0


async def test_lowercase_headers_accepted(api_client, fake):
    fake.auth1_headers = {
        "x-radiko-authtoken": TOKEN,
        "x-radiko-keylength": "5",
        "x-radiko-keyoffset": "0",
    }

    token = await AuthSession(api_client).authenticate()

    assert token.value == TOKEN


async def test_authenticate_again_restarts_from_first_step(api_client, fake):
    fake.fail(AUTH2, 401)
    session = AuthSession(api_client)
    with pytest.raises(HandshakeRejected):
        await session.authenticate()

    await session.authenticate()

    assert session.is_authenticated
    assert fake.paths_requested(AUTH1) == 2
    assert fake.paths_requested(AUTH2) == 2


async def test_reauthentication_replaces_token(api_client, fake):
    session = AuthSession(api_client)
    first = await session.authenticate()
    fake.fail(AUTH1, 500)

    with pytest.raises(HandshakeRejected):
        await session.authenticate()

    assert first.value == TOKEN
    assert not session.is_authenticated


async def test_transport_failure_is_wrapped():
    provider = ProviderConfig(auth1_url="http://127.0.0.1:1/v2/api/auth1")
    async with RadikoAPIClient(provider, timeout=5) as client:
        session = AuthSession(client)
        with pytest.raises(TransportError) as exc_info:
            await session.authenticate()

    assert exc_info.value.url == provider.auth1_url
    assert session.state is AuthState.UNAUTHENTICATED


def test_require_token_before_handshake():
    session = AuthSession(RadikoAPIClient())
    with pytest.raises(NotAuthenticated):
        session.require_token()


def test_session_token_is_masked():
    token = SessionToken(TOKEN)
    assert TOKEN not in str(token)
    assert TOKEN not in repr(token)
    assert str(token).startswith(TOKEN[:8])
