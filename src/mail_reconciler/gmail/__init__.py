"""Gmail access: API client, metadata parsing and the mailbox provider."""

from .client import GmailClient
from .provider import GmailMailboxProvider

__all__ = ["GmailClient", "GmailMailboxProvider"]
