"""Pytest configuration and shared fixtures."""

from collections.abc import Callable

import pytest

from mail_reconciler.archive import LocalArchiveRepository
from mail_reconciler.models import EmailAddress, EmailHeader


@pytest.fixture
def mock_settings(tmp_path):
    """Provide mock settings for testing."""
    from mail_reconciler.config import Settings

    return Settings(
        gmail_credentials_path=tmp_path / "missing-credentials.json",
        gmail_token_path=tmp_path / "token.json",
        archive_db_path=tmp_path / "archive.sqlite3",
        account_id="test-account",
        log_level="DEBUG",
        debug=True,
        max_retries=0,
    )


@pytest.fixture
def make_header() -> Callable[..., EmailHeader]:
    """Build headers with sensible defaults; keyword arguments override them."""

    def _make(message_id: str, subject: str = "", date: str | None = "2026-02-10T12:00:00Z", **kwargs):
        kwargs.setdefault("sender", EmailAddress(address="luke@example.com", name="Luke"))
        kwargs.setdefault("flags", frozenset({"\\Seen"}))
        return EmailHeader(id=message_id, subject=subject, date=date, **kwargs)

    return _make


@pytest.fixture
def repository(tmp_path) -> LocalArchiveRepository:
    """An initialized archive repository in a temporary directory."""
    repo = LocalArchiveRepository(tmp_path / "archive.sqlite3")
    repo.initialize()
    return repo


@pytest.fixture
def sample_email_data() -> dict:
    """Provide a Gmail API message in format=metadata."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD", "STARRED"],
        "internalDate": "1739188800000",
        "snippet": "Weekly Newsletter - Python Tips",
        "payload": {
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python Weekly <newsletter@python.org>"},
                {"name": "To", "value": "user@example.com"},
                {"name": "Date", "value": "Mon, 10 Feb 2025 12:00:00 +0000"},
            ],
        },
    }
