"""Configuration management for ccBencode.

Provides centralized configuration with TOML support, validation,
and hierarchical loading from defaults → config file → environment.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import toml

from ccbencode.models import CodecConfig, Config, ObservabilityConfig
from ccbencode.utils.exceptions import ConfigurationError
from ccbencode.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

# Global configuration instance
_config_manager: ConfigManager | None = None

ENV_MAPPINGS = {
    "CCBENCODE_MAX_DEPTH": "codec.max_depth",
    "CCBENCODE_REJECT_TRAILING_DATA": "codec.reject_trailing_data",
    "CCBENCODE_LOG_LEVEL": "observability.log_level",
    "CCBENCODE_LOG_FILE": "observability.log_file",
    "CCBENCODE_STRUCTURED_LOGGING": "observability.structured_logging",
    "CCBENCODE_LOG_CORRELATION_ID": "observability.log_correlation_id",
}


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        *,
        configure_logging: bool = True,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for ccbencode.toml
            configure_logging: Apply the observability section to the logging system

        """
        self.configure_logging = configure_logging
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._setup_logging()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / "ccbencode.toml",
            Path.home() / ".config" / "ccbencode" / "ccbencode.toml",
            Path.home() / ".ccbencode.toml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str) -> bool | int | str:
            low = raw.lower()
            if low in {"true", "yes", "on"}:
                return True
            if low in {"false", "no", "off"}:
                return False
            try:
                return int(raw)
            except ValueError:
                return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def export(self) -> str:
        """Export the current configuration as TOML."""
        return toml.dumps(self.config.model_dump(mode="json", exclude_none=True))

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        if self.configure_logging:
            setup_logging(self.config.observability)


def get_config() -> Config:
    """Get the global configuration instance.

    The manager created here on first use leaves logging alone; call
    :func:`init_config` to have the observability section applied.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(configure_logging=False)
    return _config_manager.config


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    logger.debug("Loaded configuration from %s", _config_manager.config_file)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()  # noqa: SLF001
    _config_manager._setup_logging()  # noqa: SLF001
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Reconfigures logging when the active manager owns it. Codec calls read the
    ``codec`` section on every call, so the change applies immediately.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(configure_logging=False)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001


def reset_config() -> None:
    """Drop the global configuration manager so the next access reloads it."""
    global _config_manager
    _config_manager = None


def get_codec_config() -> CodecConfig:
    """Get codec configuration."""
    return get_config().codec


def get_observability_config() -> ObservabilityConfig:
    """Get observability configuration."""
    return get_config().observability
