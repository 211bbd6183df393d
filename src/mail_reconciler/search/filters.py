"""Search filters and in-memory header matching."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mail_reconciler.models import EmailHeader
from mail_reconciler.reconcile.sorting import MISSING_TIMESTAMP, timestamp_of


class SearchLocation(str, Enum):
    """Which stores a search looks at."""

    ALL = "all"
    SERVER = "server"
    LOCAL = "local"


class SearchFilters(BaseModel):
    """Filters applied on top of the free-text query."""

    model_config = ConfigDict(frozen=True)

    location: SearchLocation = Field(default=SearchLocation.ALL, description="Stores to search")
    folder: str = Field(
        default="current",
        description="'current' for the open mailbox, 'all' for every mailbox, or a mailbox name",
    )
    sender: str = Field(default="", description="Substring of the sender address or name")
    date_from: datetime | None = Field(default=None, description="Earliest message date")
    date_to: datetime | None = Field(default=None, description="Latest message date")

    def is_active(self, query: str) -> bool:
        """A search with no text and no sender or date filter is not a search."""

        return bool(query.strip() or self.sender or self.date_from or self.date_to)

    def resolve_mailbox(self, current_mailbox: str) -> str | None:
        """Mailbox to search, or None for every mailbox."""

        if self.folder == "current":
            return current_mailbox
        if self.folder == "all":
            return None
        return self.folder

    def matches(self, header: EmailHeader, query: str) -> bool:
        """Match a header against the query text and every filter."""

        needle = query.lower().strip()
        if needle and not (_sender_contains(header, needle) or needle in header.subject.lower()):
            return False

        if self.sender and not _sender_contains(header, self.sender.lower()):
            return False

        if self.date_from is not None or self.date_to is not None:
            ts = timestamp_of(header)
            if ts == MISSING_TIMESTAMP:
                return False
            if self.date_from is not None and ts < _as_utc(self.date_from).timestamp():
                return False
            if self.date_to is not None and ts > _as_utc(self.date_to).timestamp():
                return False

        return True


def _sender_contains(header: EmailHeader, needle: str) -> bool:
    return needle in header.sender.address.lower() or needle in (header.sender.name or "").lower()


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
