"""
Partial key derivation and header helpers used by the radiko handshake.
"""

import base64
from collections.abc import Mapping
from dataclasses import dataclass

from radiko_recorder.exceptions import InvalidRange


@dataclass(frozen=True)
class KeyCoordinates:
    """Slice of the shared secret requested by the first handshake step."""

    offset: int
    length: int


def derive_partial_key(secret: str, offset: int, length: int) -> str:
    """
    Extracts ``secret[offset:offset+length]`` and returns it base64 encoded.

    Args:
        secret: The shared secret published by the web player.
        offset: Start of the slice.
        length: Number of characters to take.

    Returns:
        The partial key, standard alphabet with padding.

    Raises:
        InvalidRange: If the coordinates do not fit inside the secret.
    """
    if offset < 0 or length <= 0 or offset + length > len(secret):
        raise InvalidRange(offset, length, len(secret))

    chunk = secret[offset : offset + length]
    return base64.b64encode(chunk.encode("utf-8")).decode("ascii")


def lookup_header(headers: Mapping[str, str], canonical_name: str) -> str | None:
    """Returns a header value by its canonical name, falling back to lowercase."""
    value = headers.get(canonical_name)
    if value:
        return value
    return headers.get(canonical_name.lower()) or None
