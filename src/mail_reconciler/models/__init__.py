"""Data models for Mail Reconciler.

This module contains Pydantic models for data validation and serialization.
"""

from mail_reconciler.models.display import DisplayRecord, Source, ViewMode
from mail_reconciler.models.email_header import (
    FLAGGED_FLAG,
    SEEN_FLAG,
    EmailAddress,
    EmailHeader,
)

__all__ = [
    "DisplayRecord",
    "EmailAddress",
    "EmailHeader",
    "FLAGGED_FLAG",
    "SEEN_FLAG",
    "Source",
    "ViewMode",
]
