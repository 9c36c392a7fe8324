"""
Defines custom exceptions for the application to allow for more specific error handling.

Every error raised by the recording core carries enough context (URL, status,
handshake stage, segment index) to diagnose a failure without re-running in
verbose mode.
"""


class RecorderError(Exception):
    """Base exception for all application-specific errors."""


class InvalidRange(RecorderError):
    """Raised when key coordinates fall outside the shared secret."""

    def __init__(self, offset: int, length: int, secret_length: int):
        self.offset = offset
        self.length = length
        self.secret_length = secret_length
        super().__init__(
            f"Invalid key range: offset={offset}, length={length}, "
            f"secret length={secret_length}"
        )


class HandshakeRejected(RecorderError):
    """Raised when the provider answers a handshake step with a non-success status."""

    def __init__(self, stage: int, status: int):
        self.stage = stage
        self.status = status
        super().__init__(f"Handshake step {stage} rejected: HTTP {status}")


class MissingCredential(RecorderError):
    """Raised when a handshake response lacks a required header."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Handshake response is missing '{field}'")


class MalformedCredential(RecorderError):
    """Raised when a handshake header is present but cannot be parsed."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Handshake value '{field}' is not numeric: {value!r}")


class NotAuthenticated(RecorderError):
    """Raised when an operation needs a session token before the handshake completed."""

    def __init__(self, message: str = "Not authenticated. Run the handshake first."):
        super().__init__(message)


class ManifestFetchFailed(RecorderError):
    """Raised when a manifest cannot be fetched or the manifest chain is too deep."""

    def __init__(self, url: str, status: int | None = None, reason: str | None = None):
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}" if status is not None else reason or "unknown error"
        super().__init__(f"Failed to fetch manifest {url}: {detail}")


class TransportError(RecorderError):
    """Raised when the underlying HTTP transport fails (connection, timeout, payload)."""

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        super().__init__(
            f"Transport error for {url}: {type(cause).__name__}: {cause}"
        )


class EmptySegmentList(RecorderError):
    """Raised when asked to store zero segments."""

    def __init__(self):
        super().__init__("The manifest did not yield any media segments.")


class SegmentFetchFailed(RecorderError):
    """Raised when a single segment answers with a non-success status."""

    def __init__(self, index: int, status: int, url: str | None = None):
        self.index = index
        self.status = status
        self.url = url
        super().__init__(f"Segment {index} failed: HTTP {status} ({url})")


class EmptyOutput(RecorderError):
    """Raised when a nominally successful recording produced no bytes."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Recording produced an empty file: {path}")


class ExternalEncoderFailed(RecorderError):
    """Raised when the external encoder exits with an error."""

    def __init__(self, stderr: str, returncode: int | None = None):
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(
            f"External encoder failed (exit code {returncode}): {stderr or 'no output'}"
        )


class RecordingCancelled(RecorderError):
    """Raised when a recording is stopped through its cancellation event."""


class ConfigurationError(RecorderError):
    """Raised for issues related to configuration loading or validation."""


class InvalidRequestError(RecorderError):
    """Raised when a recording request fails validation."""
