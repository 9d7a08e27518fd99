"""
Centralized settings for vigil.

:class:`VigilSettings` is the single validated source for timeouts, pool
sizes, logging and SMTP delivery. Values come from ``VIGIL_*`` environment
variables or a ``.env`` file; :func:`get_settings` caches the result.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VigilSettings(BaseSettings):
    """Vigil configuration.

    All fields can be set via ``VIGIL_*`` environment variables (e.g.
    ``VIGIL_QUERY_TIMEOUT_SECONDS=5``).
    """

    model_config = SettingsConfigDict(
        env_prefix="VIGIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    # ── Data sources ─────────────────────────────────────────────
    query_timeout_seconds: float = Field(default=30.0, gt=0)
    test_timeout_seconds: float = Field(default=10.0, gt=0)
    pool_size: int = Field(default=10, ge=1)

    # ── Evaluation ───────────────────────────────────────────────
    evaluation_deadline_seconds: float = Field(default=60.0, gt=0)
    required_consecutive_evaluations: int = Field(default=1, ge=1)

    # ── Notifications ────────────────────────────────────────────
    notification_timeout_seconds: float = Field(default=10.0, gt=0)
    smtp_host: str | None = Field(default=None, description="Unset means email intents are only logged")
    smtp_port: int = Field(default=587)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_from: str = Field(default="alerts@localhost")
    smtp_use_tls: bool = Field(default=True)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host)


_settings_cache: dict[str, VigilSettings] = {}


def get_settings(*, _force_reload: bool = False) -> VigilSettings:
    """Load, validate, and cache a :class:`VigilSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = VigilSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "VigilSettings",
    "get_settings",
    "clear_settings_cache",
]
