"""Display-side models: view modes, provenance tags and display records."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from mail_reconciler.models.email_header import EmailHeader


class ViewMode(str, Enum):
    """Which sources the message list shows and how they are combined."""

    SERVER = "server"
    LOCAL = "local"
    ALL = "all"


class Source(str, Enum):
    """Provenance of a display record."""

    SERVER = "server"
    LOCAL = "local"
    LOCAL_ONLY = "local-only"
    # Only produced by the search provider for hits from a remote query.
    SERVER_SEARCH = "server-search"


class DisplayRecord(EmailHeader):
    """An EmailHeader annotated for display.

    Always derived fresh from a snapshot and never persisted.
    """

    source: Source = Field(description="Where this record comes from")
    is_archived: bool = Field(default=False, description="Whether a durable local copy exists")

    @classmethod
    def from_header(
        cls, header: EmailHeader, *, source: Source, is_archived: bool
    ) -> DisplayRecord:
        """Build a new record from a header without touching the header."""

        data = header.model_dump(exclude={"source", "is_archived"})
        return cls(**data, source=source, is_archived=is_archived)
