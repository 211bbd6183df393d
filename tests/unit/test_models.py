"""Unit tests for data models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from mail_reconciler.models import (
    SEEN_FLAG,
    DisplayRecord,
    EmailAddress,
    EmailHeader,
    Source,
    ViewMode,
)


class TestEmailHeader:
    """Test suite for EmailHeader model."""

    def test_email_header_creation(self) -> None:
        """Test creating an EmailHeader instance."""
        header = EmailHeader(
            id="msg123",
            subject="Test Email",
            date=datetime(2026, 2, 10, tzinfo=timezone.utc),
            sender=EmailAddress(address="sender@example.com"),
            flags=frozenset({SEEN_FLAG}),
        )

        assert header.id == "msg123"
        assert header.sender.address == "sender@example.com"
        assert header.is_unread is False

    def test_from_alias(self) -> None:
        """The sender round-trips under the 'from' key."""
        header = EmailHeader.model_validate(
            {"id": "1", "from": {"address": "luke@example.com"}, "flags": ["\\Flagged"]}
        )

        assert header.sender.address == "luke@example.com"
        assert header.is_starred is True
        assert header.model_dump(by_alias=True)["from"]["address"] == "luke@example.com"

    def test_numeric_ids_become_text(self) -> None:
        assert EmailHeader(id=42).id == "42"

    @pytest.mark.parametrize(
        "raw",
        ["2026-02-10T12:00:00Z", "Tue, 10 Feb 2026 12:00:00 +0000"],
    )
    def test_date_strings_are_parsed(self, raw: str) -> None:
        header = EmailHeader(id="1", date=raw)

        assert header.date == datetime(2026, 2, 10, 12, tzinfo=timezone.utc)

    @pytest.mark.parametrize("raw", ["", "yesterday", 12345])
    def test_bad_dates_degrade_to_none(self, raw) -> None:
        assert EmailHeader(id="1", date=raw).date is None

    def test_headers_are_frozen(self) -> None:
        header = EmailHeader(id="1", subject="before")

        with pytest.raises(ValidationError):
            header.subject = "after"


class TestDisplayRecord:
    """Test suite for DisplayRecord model."""

    def test_from_header_copies_fields(self) -> None:
        header = EmailHeader(id="1", subject="Hello", sender=EmailAddress(address="a@example.com"))

        record = DisplayRecord.from_header(header, source=Source.LOCAL_ONLY, is_archived=True)

        assert record.id == "1"
        assert record.subject == "Hello"
        assert record.sender.address == "a@example.com"
        assert record.source is Source.LOCAL_ONLY
        assert record.is_archived is True
        assert not isinstance(header, DisplayRecord)

    def test_from_display_record_replaces_tags(self) -> None:
        first = DisplayRecord.from_header(EmailHeader(id="1"), source=Source.SERVER, is_archived=False)

        second = DisplayRecord.from_header(first, source=Source.LOCAL, is_archived=True)

        assert second.source is Source.LOCAL
        assert first.source is Source.SERVER

    def test_source_values(self) -> None:
        assert Source.LOCAL_ONLY.value == "local-only"
        assert ViewMode("all") is ViewMode.ALL
