"""
Handles the radiko two-step handshake: obtain a challenge token and key
coordinates, derive the partial key, and exchange it for a validated session.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from radiko_recorder.exceptions import (
    HandshakeRejected,
    MalformedCredential,
    MissingCredential,
    NotAuthenticated,
)
from radiko_recorder.utils.formatting import mask_secret

from .keys import KeyCoordinates, derive_partial_key, lookup_header

if TYPE_CHECKING:
    from radiko_recorder.utils.structured_logger import LogSink

    from .client import RadikoAPIClient

log = logging.getLogger(__name__)

TOKEN_HEADER = "X-Radiko-AuthToken"
KEY_LENGTH_HEADER = "X-Radiko-KeyLength"
KEY_OFFSET_HEADER = "X-Radiko-KeyOffset"
PARTIAL_KEY_HEADER = "X-Radiko-Partialkey"


@dataclass(frozen=True)
class SessionToken:
    """The opaque credential attached to every post-handshake request."""

    value: str

    def __str__(self) -> str:
        return mask_secret(self.value)

    def __repr__(self) -> str:
        return f"SessionToken({mask_secret(self.value)})"


class AuthState(Enum):
    """States of the handshake."""

    UNAUTHENTICATED = "unauthenticated"
    CHALLENGED = "challenged"
    AUTHENTICATED = "authenticated"


class AuthSession:
    """
    Runs the handshake and holds the resulting session token.

    A failure in either step puts the session back into ``UNAUTHENTICATED``;
    calling ``authenticate()`` again always restarts from the first step.
    """

    def __init__(
        self, api_client: "RadikoAPIClient", logger: Optional["LogSink"] = None
    ):
        """
        Initializes the session.

        Args:
            api_client: The client whose provider config supplies endpoints,
                shared secret and identification headers.
            logger: Optional log sink; defaults to this module's logger.
        """
        self._api_client = api_client
        self._log = logger or log
        self._state = AuthState.UNAUTHENTICATED
        self._token: Optional[SessionToken] = None
        self._challenge_token: Optional[str] = None
        self.area_id: Optional[str] = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED

    def require_token(self) -> SessionToken:
        """Returns the session token, or raises if the handshake has not completed."""
        if self._state is not AuthState.AUTHENTICATED or self._token is None:
            raise NotAuthenticated()
        return self._token

    def _reset(self) -> None:
        self._state = AuthState.UNAUTHENTICATED
        self._token = None
        self._challenge_token = None
        self.area_id = None

    async def authenticate(self) -> SessionToken:
        """
        Performs both handshake steps.

        Returns:
            The validated session token.

        Raises:
            HandshakeRejected, MissingCredential, MalformedCredential,
            InvalidRange, TransportError
        """
        self._reset()
        self._log.debug("Starting radiko handshake...")
        try:
            coordinates = await self._challenge()
            partial_key = derive_partial_key(
                self._api_client.provider.secret,
                coordinates.offset,
                coordinates.length,
            )
            self._log.debug(f"Partial key derived: {mask_secret(partial_key, 4)}")
            await self._validate(partial_key)
        except BaseException:
            self._reset()
            raise

        self._log.info(
            f"Authenticated with radiko (area: {self.area_id or 'unknown'})"
        )
        return self._token

    async def _challenge(self) -> KeyCoordinates:
        """Step 1: obtain the challenge token and key coordinates."""
        provider = self._api_client.provider
        async with self._api_client.get(
            provider.auth1_url, headers=provider.identification_headers()
        ) as r:
            if r.status != 200:
                raise HandshakeRejected(stage=1, status=r.status)
            headers = r.headers

        token = lookup_header(headers, TOKEN_HEADER)
        if not token:
            raise MissingCredential("token")

        length = self._parse_coordinate(headers, KEY_LENGTH_HEADER, "keylength")
        offset = self._parse_coordinate(headers, KEY_OFFSET_HEADER, "keyoffset")

        self._challenge_token = token
        self._state = AuthState.CHALLENGED
        self._log.debug(
            f"Challenge received: token={mask_secret(token)}, "
            f"length={length}, offset={offset}"
        )
        return KeyCoordinates(offset=offset, length=length)

    @staticmethod
    def _parse_coordinate(headers, header_name: str, field: str) -> int:
        raw = lookup_header(headers, header_name)
        if raw is None:
            raise MissingCredential(field)
        try:
            return int(raw.strip())
        except ValueError as e:
            raise MalformedCredential(field, raw) from e

    async def _validate(self, partial_key: str) -> None:
        """Step 2: exchange the challenge token and partial key for a session."""
        provider = self._api_client.provider
        headers = {
            TOKEN_HEADER: self._challenge_token,
            PARTIAL_KEY_HEADER: partial_key,
        }
        async with self._api_client.get(provider.auth2_url, headers=headers) as r:
            if r.status != 200:
                raise HandshakeRejected(stage=2, status=r.status)
            body = await r.text(encoding="utf-8", errors="replace")

        parts = [p.strip() for p in re.split(r"[,\n]", body) if p.strip()]
        self.area_id = parts[0] if parts else None
        self._token = SessionToken(self._challenge_token)
        self._challenge_token = None
        self._state = AuthState.AUTHENTICATED
