"""Mail Reconciler - local-first mailbox view reconciliation.

This package merges the remote mailbox snapshot, the durable local archive
and the active search results into a single provenance-tagged display list.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from mail_reconciler.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
