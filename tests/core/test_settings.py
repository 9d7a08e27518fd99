"""Tests for ``vigil.core.settings``."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from vigil.core.settings import VigilSettings, clear_settings_cache, get_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # Keep a developer's .env or VIGIL_* exports out of the assertions
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("VIGIL_"):
            monkeypatch.delenv(name)


class TestDefaults:
    def test_defaults(self):
        s = VigilSettings()
        assert s.log_level == "INFO"
        assert s.log_format == "console"
        assert s.query_timeout_seconds == 30.0
        assert s.pool_size == 10
        assert s.required_consecutive_evaluations == 1
        assert s.smtp_host is None
        assert s.smtp_enabled is False


class TestEnvironment:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("VIGIL_QUERY_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("VIGIL_LOG_LEVEL", "debug")
        monkeypatch.setenv("VIGIL_SMTP_HOST", "mail.example.com")
        s = VigilSettings()
        assert s.query_timeout_seconds == 5.0
        assert s.log_level == "DEBUG"
        assert s.smtp_enabled is True

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("VIGIL_POOL_SIZE=3\n", encoding="utf-8")
        assert VigilSettings().pool_size == 3

    def test_invalid_level_rejected(self, monkeypatch):
        monkeypatch.setenv("VIGIL_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            VigilSettings()

    def test_non_positive_timeout_rejected(self, monkeypatch):
        monkeypatch.setenv("VIGIL_QUERY_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValidationError):
            VigilSettings()


class TestCache:
    def test_cached_until_cleared(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("VIGIL_POOL_SIZE", "7")
        assert get_settings() is first

        clear_settings_cache()
        assert get_settings().pool_size == 7

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("VIGIL_POOL_SIZE", "4")
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.pool_size == 4
