"""Header-only email metadata model.

Headers are handed around as read-only snapshots: the remote mailbox, the
local archive and the search provider all produce them, and nothing downstream
is allowed to change them in place. The model is therefore frozen.
"""

from __future__ import annotations

from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SEEN_FLAG = "\\Seen"
FLAGGED_FLAG = "\\Flagged"


class EmailAddress(BaseModel):
    """A mailbox address with an optional display name."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(default="", description="Email address")
    name: str | None = Field(default=None, description="Display name")


class EmailHeader(BaseModel):
    """A minimal representation of an email message without the body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Identifier, unique within one account and mailbox")
    thread_id: str | None = Field(default=None, description="Thread ID")
    subject: str = Field(default="", description="Subject header")
    date: datetime | None = Field(default=None, description="Parsed Date header")
    internal_date_ms: int | None = Field(
        default=None, description="Server receive time in milliseconds since epoch"
    )

    # Serialized as "from", which is a keyword in Python.
    sender: EmailAddress = Field(
        default_factory=EmailAddress, alias="from", description="From address"
    )
    flags: frozenset[str] = Field(default_factory=frozenset, description="IMAP-style flags")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        # Numeric UIDs from IMAP-style sources are accepted and kept as text.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("date", mode="before")
    @classmethod
    def lenient_date(cls, value: Any) -> Any:
        """Parse ISO-8601 or RFC 2822 strings; anything unparsable becomes None."""

        if value is None or isinstance(value, datetime):
            return value
        if not isinstance(value, str) or not value.strip():
            return None

        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            pass
        try:
            return parsedate_to_datetime(text)
        except (TypeError, ValueError, OverflowError, IndexError):
            return None

    @property
    def is_unread(self) -> bool:
        return SEEN_FLAG not in self.flags

    @property
    def is_starred(self) -> bool:
        return FLAGGED_FLAG in self.flags
