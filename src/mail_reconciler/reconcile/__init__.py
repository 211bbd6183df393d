"""Reconciliation engine.

Merges the remote mailbox snapshot, the local archive and search results into
a single provenance-tagged display list.
"""

from .engine import ReconciliationSnapshot, compute_display_records, reconcile
from .sorting import MISSING_TIMESTAMP, sort_key, sort_newest_first, timestamp_of

__all__ = [
    "MISSING_TIMESTAMP",
    "ReconciliationSnapshot",
    "compute_display_records",
    "reconcile",
    "sort_key",
    "sort_newest_first",
    "timestamp_of",
]
