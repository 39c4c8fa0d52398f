"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsError

from .enums import LogFormat
from .errors import ConfigError
from .locking import FileLocker


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class RotationConfig(BaseModel):
    interval_seconds: float = Field(default=3.0, gt=0)  # Between drain ticks
    lock_timeout_seconds: float | None = Field(default=None, ge=0)  # None = block
    chunk_size: int = Field(default=65536, gt=0)  # Copy buffer, bytes


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    replog_path: str = "replog"  # Live log written by the producer
    working_path: str = "replog.slurp"  # Private copy handed to the consumer
    one_shot: bool = False  # Keep the live log after draining

    rotation: RotationConfig = Field(default_factory=RotationConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "REPLOG_", "env_nested_delimiter": "__"}

    def build_locker(self) -> FileLocker:
        return FileLocker(timeout=self.rotation.lock_timeout_seconds)


def _deep_merge(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    """Merge ``top`` over ``base``, recursing into nested tables."""
    merged = dict(base)
    for key, value in top.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Precedence, lowest first: field defaults, the TOML file, ``REPLOG_*``
    environment variables, ``overrides``.

    Args:
        config_path: Path to TOML config file (optional, must exist if given).
        overrides: Dict of overrides to apply on top.

    Raises:
        ConfigError: The file is missing or not valid TOML, or a value fails
            validation.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigError(f"Config file {path} does not exist")

        import tomli

        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    try:
        # Env vars outrank file values; init kwargs would outrank both.
        data = _deep_merge(data, EnvSettingsSource(Settings)())
        if overrides:
            data = _deep_merge(data, overrides)
        return Settings(**data)
    except (SettingsError, ValidationError) as exc:
        raise ConfigError(str(exc)) from exc
