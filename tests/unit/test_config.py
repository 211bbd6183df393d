"""Unit tests for configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mail_reconciler.config import Settings, get_settings
from mail_reconciler.models import ViewMode


class TestSettings:
    """Test suite for Settings class."""

    def test_default_settings(self) -> None:
        """Test that default settings are properly initialized."""
        settings = Settings()

        assert settings.archive_db_path == Path("mail_archive.sqlite3")
        assert settings.default_mailbox == "INBOX"
        assert settings.default_view_mode is ViewMode.ALL
        assert settings.log_level == "INFO"
        assert settings.debug is False
        assert settings.max_retries == 3

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading settings from environment variables."""
        monkeypatch.setenv("MAIL_RECONCILER_ARCHIVE_DB_PATH", "/tmp/custom.sqlite3")
        monkeypatch.setenv("MAIL_RECONCILER_DEFAULT_VIEW_MODE", "local")
        monkeypatch.setenv("MAIL_RECONCILER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("MAIL_RECONCILER_DEBUG", "true")

        # Clear the cache to ensure fresh settings
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.archive_db_path == Path("/tmp/custom.sqlite3")
        assert settings.default_view_mode is ViewMode.LOCAL
        assert settings.log_level == "DEBUG"
        assert settings.debug is True

        # Clean up
        get_settings.cache_clear()

    def test_invalid_view_mode_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAIL_RECONCILER_DEFAULT_VIEW_MODE", "everything")

        with pytest.raises(ValidationError):
            Settings()

    def test_get_settings_returns_cached_instance(self) -> None:
        """Test that get_settings returns the same cached instance."""
        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2

        # Clean up
        get_settings.cache_clear()
