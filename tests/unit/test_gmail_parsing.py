"""Unit tests for Gmail metadata parsing helpers."""

import base64
from datetime import datetime, timezone

from mail_reconciler.gmail.parsing import decode_raw_source, labels_to_flags, message_to_email_header
from mail_reconciler.models import FLAGGED_FLAG, SEEN_FLAG


def test_message_to_email_header_parses_basic_fields(sample_email_data) -> None:
    header = message_to_email_header(sample_email_data)

    assert header.id == "msg123456"
    assert header.thread_id == "thread789"
    assert header.subject == "Weekly Newsletter - Python Tips"
    assert header.sender.address == "newsletter@python.org"
    assert header.sender.name == "Python Weekly"
    assert header.date == datetime(2025, 2, 10, 12, tzinfo=timezone.utc)
    assert header.internal_date_ms == 1739188800000
    assert header.is_unread is True
    assert header.is_starred is True


def test_message_without_headers_degrades_gracefully() -> None:
    header = message_to_email_header({"id": "m1", "internalDate": "not-a-number", "labelIds": "INBOX"})

    assert header.id == "m1"
    assert header.thread_id is None
    assert header.subject == ""
    assert header.date is None
    assert header.internal_date_ms is None
    assert header.sender.address == ""
    assert header.flags == frozenset({SEEN_FLAG})


def test_unparsable_date_header_is_none(sample_email_data) -> None:
    sample_email_data["payload"]["headers"][3]["value"] = "sometime last week"

    assert message_to_email_header(sample_email_data).date is None


def test_labels_to_flags() -> None:
    assert labels_to_flags(["INBOX"]) == frozenset({SEEN_FLAG})
    assert labels_to_flags(["INBOX", "UNREAD"]) == frozenset()
    assert labels_to_flags(["STARRED"]) == frozenset({SEEN_FLAG, FLAGGED_FLAG})


def test_decode_raw_source_restores_padding() -> None:
    source = b"Subject: hi\r\n\r\nbody?"
    encoded = base64.urlsafe_b64encode(source).decode().rstrip("=")

    assert decode_raw_source({"raw": encoded}) == source
    assert decode_raw_source({}) == b""
