"""Durable local storage.

This package keeps user-archived and opportunistically cached messages, plus
the last known server header list per mailbox.
"""

from .repository import ArchiveStats, HeaderSnapshot, LocalArchiveRepository, StoredMessage

__all__ = ["ArchiveStats", "HeaderSnapshot", "LocalArchiveRepository", "StoredMessage"]
