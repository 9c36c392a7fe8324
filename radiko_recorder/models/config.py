"""
Pydantic models for application and provider configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

# Short station code -> display name
STATIONS = {
    "TBS": "TBSラジオ",
    "LFR": "ニッポン放送",
    "QRR": "文化放送",
    "RN1": "ラジオNIKKEI第1",
    "RN2": "ラジオNIKKEI第2",
    "INT": "interfm",
    "FMT": "TOKYO FM",
    "FMJ": "J-WAVE",
    "JORF": "ラジオ日本",
    "BAYFM": "bayfm",
    "NACK5": "NACK5",
    "YFM": "FM YOKOHAMA",
}

DEFAULT_STATION_ALIASES = {
    "tbs": "TBS",
    "nippon": "LFR",
    "bunka": "QRR",
    "nikkei1": "RN1",
    "nikkei2": "RN2",
    "inter": "INT",
    "tfm": "FMT",
    "jwave": "FMJ",
    "radionippon": "JORF",
    "bay": "BAYFM",
    "nack": "NACK5",
    "fmy": "YFM",
}

RETRIEVERS = ("segments", "ffmpeg", "auto")

DEFAULT_OUTPUT_TEMPLATE = "{station}_{date}_{time}.{ext}"


def get_available_stations() -> dict[str, str]:
    """Returns a copy of the station code -> display name mapping."""
    return dict(STATIONS)


def get_station_name(code: str) -> str | None:
    """Looks up a station's display name by its short code (case-insensitive)."""
    return STATIONS.get(code.upper())


def default_output_dir() -> str:
    return str(Path.home() / "Downloads" / "radiko")


class ProviderConfig(BaseModel):
    """
    Immutable description of the provider: endpoints, the shared secret and the
    fixed identification headers sent during the handshake.

    Tests point the endpoints at a local fake provider.
    """

    secret: str = "bcd151073c03b352e1ef2fd66c32209da9ca0afa"
    auth1_url: str = "https://radiko.jp/v2/api/auth1"
    auth2_url: str = "https://radiko.jp/v2/api/auth2"
    timefree_playlist_url: str = "https://radiko.jp/v2/api/ts/playlist.m3u8"
    live_playlist_url: str = "https://si-f-radiko.smartstream.ne.jp/so/playlist.m3u8"

    app: str = "pc_html5"
    app_version: str = "0.0.1"
    user: str = "dummy_user"
    device: str = "pc"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )
    token_header: str = "X-Radiko-AuthToken"

    class Config:
        """Pydantic model configuration."""

        frozen = True

    def identification_headers(self) -> dict[str, str]:
        """Headers sent with the first handshake step."""
        return {
            "X-Radiko-App": self.app,
            "X-Radiko-App-Version": self.app_version,
            "X-Radiko-User": self.user,
            "X-Radiko-Device": self.device,
        }


class RecorderConfig(BaseModel):
    """A validated configuration model for the application."""

    # Output
    output_dir: str = Field(default_factory=default_output_dir)
    output_template: str = DEFAULT_OUTPUT_TEMPLATE
    output_extension: str = "aac"

    # Recording
    default_duration: int = 60
    station_aliases: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATION_ALIASES)
    )
    ffmpeg_path: str = "ffmpeg"
    retriever: str = "segments"

    # Network
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.5
    progress_interval: int = 10
    max_manifest_depth: int = 5
    live_poll_interval: float = 5.0

    # Internal field not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("default_duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Default duration must be a positive number of minutes.")
        return v

    @field_validator("retriever")
    @classmethod
    def validate_retriever(cls, v: str) -> str:
        v = v.lower()
        if v not in RETRIEVERS:
            raise ValueError(f"Retriever must be one of: {', '.join(RETRIEVERS)}.")
        return v

    @field_validator("output_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Validates the output file name template."""
        if not v:
            raise ValueError("Output template cannot be empty.")
        if ".." in v:
            raise ValueError("Output template cannot contain relative '..' paths.")
        return v

    @field_validator("output_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.lstrip(".")
        if not v:
            raise ValueError("Output extension cannot be empty.")
        return v

    @field_validator("station_aliases")
    @classmethod
    def normalize_aliases(cls, v: dict[str, str]) -> dict[str, str]:
        """Aliases are matched case-insensitively, codes are upper case."""
        return {alias.lower(): code.upper() for alias, code in v.items()}

    @field_validator("timeout", "retry_delay", "live_poll_interval")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Timeouts and delays cannot be negative.")
        return v

    @field_validator("retry_attempts", "progress_interval", "max_manifest_depth")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1.")
        return v

    def resolve_station(self, station_id: str) -> str:
        """Maps a user-supplied station name or alias to a station code."""
        return self.station_aliases.get(station_id.lower(), station_id.upper())

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns the scalar keys stored in the INI file's DEFAULT section."""
        internal_fields = {"config_path", "station_aliases"}
        return {key for key in cls.model_fields if key not in internal_fields}
