"""Mailbox state holder and controller."""

from .controller import MailboxController, MailboxProvider
from .mailbox import FetchTicket, MailboxState, ServerListStatus

__all__ = ["FetchTicket", "MailboxController", "MailboxProvider", "MailboxState", "ServerListStatus"]
