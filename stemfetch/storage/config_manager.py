"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from stemfetch.exceptions import ConfigurationError
from stemfetch.models.config import ClientConfig

log = logging.getLogger(__name__)

# Defaults written for keys missing from an existing file.
DEFAULT_SETTINGS: dict[str, Any] = {
    "request_timeout": 300.0,
    "poll_interval": 10.0,
    "timeout": 600.0,
    "max_concurrent_downloads": 2,
    "output_dir": ".",
    "default_models": [],
    "output_format": "flac",
}


def _to_ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(map(str, value))
    return str(value)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ClientConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'stemfetch init <API_URL>' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        try:
            config_from_file = self._get_config_as_dict()
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return ClientConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save; `api_url` is required.

        Raises:
            ConfigurationError: If the settings are invalid or the file cannot be
            written.
        """
        try:
            validated = ClientConfig(**{**DEFAULT_SETTINGS, **settings})
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {
            key: _to_ini_value(getattr(validated, key))
            for key in sorted(ClientConfig.get_ini_keys())
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "api_url": section.get("api_url", ""),
            "request_timeout": section.getfloat("request_timeout", 300.0),
            "poll_interval": section.getfloat("poll_interval", 10.0),
            "timeout": section.getfloat("timeout", 600.0),
            "max_concurrent_downloads": section.getint("max_concurrent_downloads", 2),
            "output_dir": section.get("output_dir", "."),
            "default_models": [
                m.strip()
                for m in section.get("default_models", "").split(",")
                if m.strip()
            ],
            "output_format": section.get("output_format", "flac"),
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key, default_value in DEFAULT_SETTINGS.items():
            if key not in config_section:
                config_section[key] = _to_ini_value(default_value)
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the file without validating it, for display."""
        self._parser.read(self.config_file_path, encoding="utf-8")
        return self._get_config_as_dict()
