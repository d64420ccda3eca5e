"""
Configuration management for tidal-playlist

This module handles loading, validation, and management of application settings
from multiple sources including YAML files, a ``.env`` file and environment
variables. It provides a centralized configuration system with validation.

The configuration is organized into logical sections using dataclasses:
- TIDAL API settings (credentials, country, OAuth redirect and scopes)
- Playlist generation (default name, track count)
- Artist filters (whitelist, blacklist)
- Logging, network and token storage options

Sensitive data (client id and secret) can be provided through environment
variables with the ``TIDAL_`` prefix so they never need to live in a
configuration file. Precedence, lowest first: defaults, YAML file, ``.env``,
process environment.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ..exceptions import ConfigError
from ..utils.helpers import parse_comma_list


ENV_PREFIX = "TIDAL_"
DEFAULT_CONFIG_DIRECTORY = "~/.config/tidal-playlist"


@dataclass
class TidalConfig:
    """
    TIDAL API configuration and authentication settings

    Contains credentials and settings for the TIDAL developer API.
    Sensitive values (client_id, client_secret) should be provided via
    environment variables for security.
    """
    client_id: str = ""
    client_secret: str = ""
    country_code: str = "US"
    redirect_url: str = "http://localhost:8080/callback"
    scopes: List[str] = field(default_factory=lambda: [
        "user.read", "collection.read", "collection.write",
        "playlists.read", "playlists.write"
    ])


@dataclass
class PlaylistConfig:
    """
    Playlist generation settings

    ``count`` is the number of random artist draws, and therefore the
    upper bound on the number of tracks written.
    """
    default_name: str = "My Artists Mix"
    count: int = 50


@dataclass
class FiltersConfig:
    """
    Artist filtering settings

    Entries are artist identifiers, compared case-insensitively. A
    non-empty whitelist takes precedence and the blacklist is ignored.
    """
    whitelist: List[str] = field(default_factory=list)
    blacklist: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls application logging behavior including log levels, file output,
    rotation, and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class NetworkConfig:
    """
    Network and HTTP configuration settings

    ``request_delay`` is the pause after every request before the next one
    may start. Only one request is ever in flight.
    """
    base_url: str = "https://openapi.tidal.com"
    request_timeout: int = 30
    request_delay: float = 0.3


@dataclass
class SecurityConfig:
    """
    Security and storage configuration

    Controls where the OAuth token and the user configuration live.
    """
    token_storage_path: str = f"{DEFAULT_CONFIG_DIRECTORY}/token.json"
    config_directory: str = DEFAULT_CONFIG_DIRECTORY


class Settings:
    """
    Main settings class that manages all configuration

    This class serves as the central configuration manager, loading settings
    from YAML files and environment variables and providing a unified
    interface for accessing configuration throughout the application.

    The class handles:
    - Loading configuration from YAML files
    - Overriding with environment variables
    - Validating configuration values
    """

    def __init__(self, config_path: Optional[str] = None, load_env: bool = True):
        """
        Initialize settings from config file and environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
            load_env: Read the ``.env`` file and ``TIDAL_*`` environment variables

        Raises:
            ConfigError: If the config file is missing (explicit path only),
                unreadable or malformed
        """
        self.config_path = config_path
        self.loaded_from: Optional[Path] = None

        # Initialize all configuration objects with default values
        self.tidal = TidalConfig()
        self.playlist = PlaylistConfig()
        self.filters = FiltersConfig()
        self.logging = LoggingConfig()
        self.network = NetworkConfig()
        self.security = SecurityConfig()

        # Load configuration from various sources in order of precedence
        self._load_config()
        if load_env:
            load_dotenv(override=False)
            self._load_environment_variables()

    def _sections(self) -> Dict[str, Any]:
        return {
            'tidal': self.tidal,
            'playlist': self.playlist,
            'filters': self.filters,
            'logging': self.logging,
            'network': self.network,
            'security': self.security,
        }

    def _candidate_paths(self) -> List[Path]:
        """
        Config file locations in order of precedence

        An explicit path is the only candidate when given.
        """
        if self.config_path:
            return [Path(self.config_path).expanduser()]
        return [
            Path("config.yaml"),
            Path(DEFAULT_CONFIG_DIRECTORY).expanduser() / "config.yaml",
        ]

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in multiple locations in order of
        precedence. The first file found will be used. A missing file is
        only an error when the path was given explicitly.
        """
        if self.config_path and not Path(self.config_path).expanduser().exists():
            raise ConfigError(
                f"Config file not found: {self.config_path}",
                details={'path': str(self.config_path)}
            )

        for path in self._candidate_paths():
            if not path.exists():
                continue

            try:
                with open(path, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(
                    f"Failed to read config file {path}: {e}",
                    details={'path': str(path)}
                ) from e

            if not isinstance(config_data, dict):
                raise ConfigError(
                    f"Config file {path} must contain a mapping of sections",
                    details={'path': str(path)}
                )

            self._apply_config(config_data)
            self.loaded_from = path
            break

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Maps configuration sections from the YAML file to the appropriate
        dataclass instances, updating only the attributes that exist in
        both the config file and the dataclass definition.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load configuration overrides from ``TIDAL_*`` environment variables

        Environment variables take precedence over file-based configuration.
        List values are comma-separated.
        """
        env_mappings = {
            'CLIENT_ID': lambda v: setattr(self.tidal, 'client_id', v),
            'CLIENT_SECRET': lambda v: setattr(self.tidal, 'client_secret', v),
            'COUNTRY_CODE': lambda v: setattr(self.tidal, 'country_code', v),
            'PLAYLIST_NAME': lambda v: setattr(self.playlist, 'default_name', v),
            'PLAYLIST_COUNT': lambda v: setattr(self.playlist, 'count', self._parse_int('PLAYLIST_COUNT', v)),
            'WHITELIST': lambda v: setattr(self.filters, 'whitelist', parse_comma_list(v)),
            'BLACKLIST': lambda v: setattr(self.filters, 'blacklist', parse_comma_list(v)),
            'LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
        }

        for name, setter in env_mappings.items():
            value = os.getenv(ENV_PREFIX + name)
            if value:
                setter(value)

    @staticmethod
    def _parse_int(name: str, value: str) -> int:
        try:
            return int(value)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from e

    def get_config_directory(self) -> Path:
        """
        Get the expanded config directory path

        Returns:
            Path object for the configuration directory
        """
        return Path(self.security.config_directory).expanduser()

    def get_token_storage_path(self) -> Path:
        """
        Get the expanded token storage path

        Returns:
            Path object for the token storage file
        """
        return Path(self.security.token_storage_path).expanduser()

    def validate(self) -> None:
        """
        Validate current configuration

        Collects every problem before failing so the user can fix them
        in one pass.

        Raises:
            ConfigError: Listing all validation errors
        """
        errors = []

        if not self.tidal.client_id:
            errors.append("tidal.client_id is required")
        if not self.tidal.client_secret:
            errors.append("tidal.client_secret is required")

        if not isinstance(self.playlist.count, int) or isinstance(self.playlist.count, bool):
            errors.append(f"playlist.count must be an integer, got {self.playlist.count!r}")
        elif self.playlist.count < 1:
            errors.append("playlist.count must be at least 1")

        for name in ('whitelist', 'blacklist'):
            entries = getattr(self.filters, name)
            if not isinstance(entries, list) or not all(isinstance(e, (str, int)) for e in entries):
                errors.append(f"filters.{name} must be a list of artist ids")

        if self.network.request_delay < 0:
            errors.append("network.request_delay must not be negative")

        if errors:
            raise ConfigError(
                "invalid config: " + "; ".join(errors),
                details={'errors': errors}
            )


# Global settings instance, created on first access
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance

    Provides access to the singleton settings instance that is shared
    throughout the application.

    Returns:
        The global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files

    Creates a new settings instance with updated configuration from files
    and environment variables.

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global _settings
    _settings = Settings(config_path)
    return _settings
