"""
Provides methods for checking the integrity of recorded media files.
"""

import logging
from pathlib import Path

from mutagen import File as MutagenFile
from mutagen import MutagenError

from radiko_recorder.exceptions import EmptyOutput

log = logging.getLogger(__name__)


class OutputIntegrityChecker:
    """A collection of static methods for validating recording output."""

    @staticmethod
    def require_non_empty(filepath: Path) -> int:
        """
        Ensures a recording actually produced bytes.

        Returns:
            The file size.

        Raises:
            EmptyOutput: If the file is missing or zero bytes long.
        """
        path = Path(filepath)
        size = path.stat().st_size if path.is_file() else 0
        if size == 0:
            raise EmptyOutput(str(path))
        return size

    @staticmethod
    def check_audio(filepath: Path) -> bool:
        """
        Checks whether mutagen recognises the file as an audio stream with a
        positive duration. Advisory only: raw concatenated segments are not
        always recognised.

        Args:
            filepath: Path to the recorded file.

        Returns:
            True if the file appears to be valid audio, False otherwise.
        """
        try:
            audio = MutagenFile(str(filepath))
        except MutagenError as e:
            log.debug(f"Audio check failed for '{filepath}': {e}")
            return False

        if audio is None or not audio.info or not getattr(audio.info, "length", 0):
            log.warning(
                f"[yellow]'{filepath}' was not recognised as an audio stream.[/yellow]"
            )
            return False
        return True
