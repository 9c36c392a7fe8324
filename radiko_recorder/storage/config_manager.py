"""
Reads and writes config.ini: the [DEFAULT] settings and the [aliases]
station table, with environment overrides applied on load.
"""

import configparser
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from radiko_recorder.exceptions import ConfigurationError
from radiko_recorder.models.config import RecorderConfig

log = logging.getLogger(__name__)

ALIASES_SECTION = "aliases"

# Environment variable -> config key
ENV_OVERRIDES = {
    "DEFAULT_DURATION": "default_duration",
    "DEFAULT_OUTPUT_DIR": "output_dir",
    "FFMPEG_PATH": "ffmpeg_path",
}


class ConfigManager:
    """Loads, migrates and saves the recorder's INI file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)
        # Keep alias keys as written
        self._parser.optionxform = str

    def load_config(
        self,
        cli_options: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> RecorderConfig:
        """
        Loads configuration from the INI file, applies environment and CLI
        overrides, and validates it. A missing file yields the defaults.

        Args:
            cli_options: A dictionary of options provided via the command line.
            environ: Environment to read overrides from (defaults to os.environ).

        Returns:
            A validated RecorderConfig object.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        settings: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            settings = self._get_config_as_dict()
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        settings.update(self._env_overrides(os.environ if environ is None else environ))
        if cli_options:
            settings.update(cli_options)

        try:
            return RecorderConfig(
                **settings, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @staticmethod
    def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for env_name, key in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if not value:
                continue
            if key == "default_duration":
                try:
                    overrides[key] = int(value)
                except ValueError:
                    log.warning(
                        f"[yellow]Ignoring non-numeric {env_name}={value!r}[/yellow]"
                    )
            else:
                overrides[key] = value
        return overrides

    def save_config(self, config: Optional[RecorderConfig] = None) -> None:
        """
        Writes a configuration file, using defaults when no config is given.
        """
        config = config or RecorderConfig()
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        parser["DEFAULT"] = {
            key: self._to_ini_value(getattr(config, key))
            for key in sorted(RecorderConfig.get_ini_keys())
        }
        parser[ALIASES_SECTION] = dict(config.station_aliases)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                parser.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the INI sections into a dictionary of raw settings."""
        section = self._parser["DEFAULT"]
        settings: dict[str, Any] = {
            key: section[key] for key in RecorderConfig.get_ini_keys() if key in section
        }
        if self._parser.has_section(ALIASES_SECTION):
            # Section proxies include DEFAULT keys, read the section's own items only
            settings["station_aliases"] = {
                alias: code
                for alias, code in self._parser.items(ALIASES_SECTION, raw=True)
                if alias not in self._parser.defaults()
            }
        return settings

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = RecorderConfig()
        section = self._parser["DEFAULT"]
        needs_saving = False

        for key in sorted(RecorderConfig.get_ini_keys()):
            if key not in section:
                section[key] = self._to_ini_value(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{section[key]}'."
                )

        if not self._parser.has_section(ALIASES_SECTION):
            self._parser[ALIASES_SECTION] = dict(defaults.station_aliases)
            needs_saving = True

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
