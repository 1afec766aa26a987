"""Configuration loading and validation."""

import copy
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from vmtop.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_COMMAND_TIMEOUT_SECONDS,
    DEFAULT_EVICTION_THRESHOLD,
    DEFAULT_MAX_REFRESH_INTERVAL_SECONDS,
    DEFAULT_MESSAGE_TTL_SECONDS,
    DEFAULT_PROVIDER,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    LOG_FORMATS,
    LOG_LEVELS,
)
from vmtop.providers import list_providers

logger = logging.getLogger(__name__)

LOCAL_CONFIG_NAME = "vmtop.yaml"


def user_config_path() -> Path:
    """Return the per-user config file location (~/.config/vmtop/config.yaml)."""
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "vmtop" / "config.yaml"


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings handed to the dashboard.

    Attributes
    ----------
    provider : str
        Registered provider name
    project : str | None
        Project to list; None lets the provider detect one
    region : str | None
        Region filter; None lists every region
    refresh_interval : float
        Base poll interval in seconds
    max_refresh_interval : float
        Backoff ceiling in seconds
    command_timeout : float
        Seconds before an unanswered command fails
    eviction_threshold : int
        Missing polls tolerated before an instance is dropped
    message_ttl : float
        Status message lifetime in seconds
    shutdown_grace : float
        Longest wait for background work when quitting
    credentials_path : str | None
        Explicit service account / credentials file for the provider
    log_file : str | None
        Optional log file path
    log_level : str
        Log level name
    log_format : str
        'text' or 'json'
    """

    provider: str = DEFAULT_PROVIDER
    project: str | None = None
    region: str | None = None
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    max_refresh_interval: float = DEFAULT_MAX_REFRESH_INTERVAL_SECONDS
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS
    eviction_threshold: int = DEFAULT_EVICTION_THRESHOLD
    message_ttl: float = DEFAULT_MESSAGE_TTL_SECONDS
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
    credentials_path: str | None = None
    log_file: str | None = None
    log_level: str = "info"
    log_format: str = "text"


SETTING_NAMES = tuple(f.name for f in fields(Settings))

DURATION_KEYS = (
    "refresh_interval",
    "max_refresh_interval",
    "command_timeout",
    "message_ttl",
    "shutdown_grace",
)


class ConfigLoader:
    """Load YAML configuration and merge it over built-in defaults."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS = {
            "provider": DEFAULT_PROVIDER,
            "project": None,
            "region": None,
            "refresh_interval": DEFAULT_REFRESH_INTERVAL_SECONDS,
            "max_refresh_interval": DEFAULT_MAX_REFRESH_INTERVAL_SECONDS,
            "command_timeout": DEFAULT_COMMAND_TIMEOUT_SECONDS,
            "eviction_threshold": DEFAULT_EVICTION_THRESHOLD,
            "message_ttl": DEFAULT_MESSAGE_TTL_SECONDS,
            "shutdown_grace": DEFAULT_SHUTDOWN_GRACE_SECONDS,
            "credentials_path": None,
            "log_file": None,
            "log_level": "info",
            "log_format": "text",
        }

    def resolve_config_path(self, config_path: str | None = None) -> Path | None:
        """Find the configuration file to load.

        Lookup order: explicit path, then the VMTOP_CONFIG environment
        variable, then ./vmtop.yaml, then ~/.config/vmtop/config.yaml.

        Parameters
        ----------
        config_path : str | None
            Explicit path given on the command line

        Returns
        -------
        Path | None
            File to load, or None when no config file exists

        Raises
        ------
        ValueError
            If an explicitly requested file does not exist
        """
        explicit = config_path or os.environ.get(CONFIG_ENV_VAR)

        if explicit:
            path = Path(explicit).expanduser()
            if not path.exists():
                raise ValueError(f"Config file not found: {path}")
            return path

        for candidate in (Path(LOCAL_CONFIG_NAME), user_config_path()):
            if candidate.exists():
                return candidate

        return None

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, the lookup order of
            ``resolve_config_path`` applies

        Returns
        -------
        dict[str, Any]
            Parsed configuration with all variable interpolations resolved;
            empty when no file was found

        Raises
        ------
        ValueError
            If the file cannot be parsed or its variables cannot be resolved
        """
        config_file = self.resolve_config_path(config_path)

        if config_file is None:
            logger.debug("No configuration file found, using defaults")
            return {}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise ValueError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None or not OmegaConf.is_dict(cfg):
            return {}

        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e
        except (ValueError, KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

        logger.debug("Loaded configuration from %s", config_file)
        return config

    def merge_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Overlay file values on the built-in defaults.

        Unknown keys (other than ``vars``) are reported and ignored.
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        for key, value in config.items():
            if key == "vars":
                continue
            if key not in merged:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            merged[key] = value

        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration values and types.

        Parameters
        ----------
        config : dict[str, Any]
            Merged configuration to validate

        Raises
        ------
        ValueError
            If configuration is invalid
        """
        provider = config.get("provider", DEFAULT_PROVIDER)
        available_providers = list_providers()
        if provider not in available_providers:
            raise ValueError(
                f"Unknown provider: {provider}. Available providers: {available_providers}"
            )

        for key in ("project", "region", "credentials_path", "log_file"):
            value = config.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")

        self._validate_intervals(config)
        self._validate_logging(config)

    def _validate_intervals(self, config: dict[str, Any]) -> None:
        for key in DURATION_KEYS:
            value = config.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{key} must be a number")
            if value <= 0:
                raise ValueError(f"{key} must be positive")

        if config["max_refresh_interval"] < config["refresh_interval"]:
            raise ValueError("max_refresh_interval must not be lower than refresh_interval")

        threshold = config.get("eviction_threshold")
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            raise ValueError("eviction_threshold must be an integer")
        if threshold < 1:
            raise ValueError("eviction_threshold must be at least 1")

    def _validate_logging(self, config: dict[str, Any]) -> None:
        level = config.get("log_level")
        if not isinstance(level, str) or level.lower() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        log_format = config.get("log_format")
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

    def build_settings(self, config: dict[str, Any]) -> Settings:
        """Validate merged configuration and freeze it into Settings."""
        self.validate_config(config)
        values = {name: config[name] for name in SETTING_NAMES if name in config}
        for key in DURATION_KEYS:
            values[key] = float(values[key])
        values["log_level"] = values["log_level"].lower()
        return Settings(**values)
