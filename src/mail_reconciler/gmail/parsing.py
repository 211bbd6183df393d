"""Helpers for parsing Gmail message metadata into internal models."""

from __future__ import annotations

import base64
from datetime import datetime
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any

from mail_reconciler.models import FLAGGED_FLAG, SEEN_FLAG, EmailAddress, EmailHeader

METADATA_HEADERS = ["Subject", "From", "Date", "Message-ID"]


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def _parse_sender(value: str | None) -> EmailAddress:
    if not value:
        return EmailAddress()
    # getaddresses returns list[(name, addr)]
    for name, addr in getaddresses([value]):
        if addr:
            return EmailAddress(address=addr, name=name or None)
    return EmailAddress()


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError, IndexError):
        return None


def labels_to_flags(label_ids: list[str]) -> frozenset[str]:
    """Map Gmail system labels onto IMAP-style flags."""

    flags = set()
    if "UNREAD" not in label_ids:
        flags.add(SEEN_FLAG)
    if "STARRED" in label_ids:
        flags.add(FLAGGED_FLAG)
    return frozenset(flags)


def message_to_email_header(message: dict[str, Any]) -> EmailHeader:
    """Convert a Gmail API message (format=metadata) to EmailHeader.

    Args:
        message: Gmail API message dict.

    Returns:
        EmailHeader: Parsed header-only model.
    """

    hm = _header_map(message)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []

    internal_date_ms: int | None
    internal_date_raw = message.get("internalDate")
    try:
        internal_date_ms = int(internal_date_raw) if internal_date_raw is not None else None
    except (TypeError, ValueError):
        internal_date_ms = None

    return EmailHeader(
        id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or "") or None,
        subject=hm.get("subject") or "",
        date=_parse_date(hm.get("date")),
        internal_date_ms=internal_date_ms,
        sender=_parse_sender(hm.get("from")),
        flags=labels_to_flags([str(x) for x in label_ids if isinstance(x, str)]),
    )


def decode_raw_source(message: dict[str, Any]) -> bytes:
    """Decode the base64url ``raw`` field of a Gmail message (format=raw)."""

    raw = message.get("raw")
    if not isinstance(raw, str) or not raw:
        return b""
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)
