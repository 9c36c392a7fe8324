"""
Delegates download and encoding of a whole stream to an external ffmpeg process.
"""

import asyncio
import logging
import os
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from radiko_recorder.exceptions import ConfigurationError, ExternalEncoderFailed

if TYPE_CHECKING:
    from radiko_recorder.utils.structured_logger import LogSink

log = logging.getLogger(__name__)


def check_ffmpeg(ffmpeg_path: str) -> str:
    """
    Locates the encoder binary, either as an explicit path or on ``PATH``.

    Returns:
        The resolved path.

    Raises:
        ConfigurationError: If no executable can be found.
    """
    if os.path.dirname(ffmpeg_path):
        if os.path.isfile(ffmpeg_path):
            return ffmpeg_path
    elif resolved := shutil.which(ffmpeg_path):
        return resolved
    raise ConfigurationError(f"ffmpeg not found: {ffmpeg_path}")


class ExternalEncoder:
    """Runs ffmpeg against the top-level stream URL with a fixed time budget."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", logger: Optional["LogSink"] = None):
        self.ffmpeg_path = ffmpeg_path
        self._log = logger or log
        self.process: Optional[asyncio.subprocess.Process] = None

    def is_available(self) -> bool:
        try:
            check_ffmpeg(self.ffmpeg_path)
            return True
        except ConfigurationError:
            return False

    def build_command(
        self,
        stream_url: str,
        headers: Mapping[str, str],
        duration_minutes: int,
        output_path: Path,
    ) -> list[str]:
        header_block = "".join(f"{name}: {value}\r\n" for name, value in headers.items())
        return [
            self.ffmpeg_path,
            "-loglevel",
            "error",
            "-y",
            "-headers",
            header_block,
            "-i",
            stream_url,
            "-t",
            str(duration_minutes * 60),
            "-vn",
            "-acodec",
            "copy",
            str(output_path),
        ]

    async def encode(
        self,
        stream_url: str,
        headers: Mapping[str, str],
        duration_minutes: int,
        output_path: Path,
    ) -> Path:
        """
        Records ``duration_minutes`` of ``stream_url`` into ``output_path``.

        Raises:
            ExternalEncoderFailed: If ffmpeg cannot be started or exits non-zero.
        """
        cmd = self.build_command(stream_url, headers, duration_minutes, output_path)
        self._log.debug(f"Starting ffmpeg for {stream_url} ({duration_minutes} min)")

        try:
            process = self.process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalEncoderFailed(str(e)) from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            raise ExternalEncoderFailed(
                stderr.decode("utf-8", errors="replace").strip(), process.returncode
            )
        return output_path
