"""Newest-first ordering for display records."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timezone
from typing import TypeVar

from mail_reconciler.models import EmailHeader

H = TypeVar("H", bound=EmailHeader)

# Timestamp used for headers with no usable date. Negative infinity sorts
# below every real date, including pre-1970 ones.
MISSING_TIMESTAMP = float("-inf")


def timestamp_of(header: EmailHeader) -> float:
    """Seconds since epoch for a header.

    Uses the Date header, then the server receive time, then MISSING_TIMESTAMP.
    Naive datetimes are read as UTC.
    """

    if header.date is not None:
        value = header.date
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        try:
            return value.timestamp()
        except (OverflowError, OSError, ValueError):
            pass

    if header.internal_date_ms is not None:
        return header.internal_date_ms / 1000.0

    return MISSING_TIMESTAMP


def sort_key(header: EmailHeader) -> tuple[float, str]:
    # Equal timestamps fall back to ascending identifier.
    return (-timestamp_of(header), header.id)


def sort_newest_first(headers: Iterable[H]) -> list[H]:
    return sorted(headers, key=sort_key)
