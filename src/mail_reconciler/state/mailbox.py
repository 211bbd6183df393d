"""Single owner of the reconciliation inputs for one open mailbox.

Every action that changes what the user should see (a fetch completing, an
archive, a delete on the server, a read-status change, a view-mode switch, a
search starting or ending) goes through :class:`MailboxState`. Each mutation is
applied synchronously, before the next call to :meth:`display_records`, so a
recomputation can never see a picture that is one event stale.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import structlog

from mail_reconciler.archive import LocalArchiveRepository
from mail_reconciler.models import SEEN_FLAG, DisplayRecord, EmailHeader, ViewMode
from mail_reconciler.reconcile import ReconciliationSnapshot, reconcile

logger = structlog.get_logger()


class ServerListStatus(str, Enum):
    """How much the current server header list can be trusted."""

    NOT_LOADED = "not-loaded"
    CACHED = "cached"
    LOADED = "loaded"


@dataclass(frozen=True)
class FetchTicket:
    """Identifies one server fetch so late results can be recognised as stale."""

    account_id: str
    mailbox: str
    generation: int


class MailboxState:
    """Holds server headers, local headers, archived ids, view mode and search."""

    def __init__(
        self,
        repository: LocalArchiveRepository,
        account_id: str,
        mailbox: str = "INBOX",
        view_mode: ViewMode = ViewMode.ALL,
    ) -> None:
        self._repository = repository
        self.account_id = account_id
        self.mailbox = mailbox
        self.view_mode = ViewMode(view_mode)

        self._server_headers: list[EmailHeader] = []
        self._local_headers: list[EmailHeader] = []
        self._archived_ids: set[str] = set()
        self.server_status = ServerListStatus.NOT_LOADED

        self._search_active = False
        self._search_results: list[DisplayRecord] = []

        self._generation = 0
        self._switches = 0

    @property
    def server_headers(self) -> list[EmailHeader]:
        return list(self._server_headers)

    @property
    def local_headers(self) -> list[EmailHeader]:
        return list(self._local_headers)

    @property
    def archived_ids(self) -> frozenset[str]:
        return frozenset(self._archived_ids)

    @property
    def search_active(self) -> bool:
        return self._search_active

    @property
    def mailbox_epoch(self) -> int:
        """Changes whenever another mailbox is opened."""
        return self._switches

    def is_stored(self, message_id: str) -> bool:
        return any(h.id == message_id for h in self._local_headers)

    # Loading

    def load_local(self) -> None:
        """Read local headers and the archived index from the repository."""

        self._local_headers = self._repository.get_all(self.account_id, self.mailbox)
        self._archived_ids = self._repository.archived_ids(self.account_id, self.mailbox)
        logger.debug(
            "local_headers_loaded",
            mailbox=self.mailbox,
            count=len(self._local_headers),
            archived=len(self._archived_ids),
        )

    def restore_cached_headers(self) -> bool:
        """Show the last persisted server list until a fetch completes.

        Returns:
            True if a cached list was found.
        """

        if self.server_status is ServerListStatus.LOADED:
            return False

        snapshot = self._repository.load_header_snapshot(self.account_id, self.mailbox)
        if snapshot is None:
            return False

        self._server_headers = list(snapshot.headers)
        self.server_status = ServerListStatus.CACHED
        logger.info(
            "server_headers_restored_from_cache",
            mailbox=self.mailbox,
            count=len(snapshot.headers),
            last_synced=snapshot.last_synced.isoformat(),
        )
        return True

    def begin_fetch(self) -> FetchTicket:
        """Start a server fetch. Any older ticket becomes stale."""

        self._generation += 1
        return FetchTicket(self.account_id, self.mailbox, self._generation)

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket == FetchTicket(self.account_id, self.mailbox, self._generation)

    def accept_server_headers(self, ticket: FetchTicket, headers: Sequence[EmailHeader]) -> bool:
        """Install a completed fetch unless it was superseded.

        The list is also persisted as the mailbox header snapshot.

        Returns:
            False if the result was discarded as stale.
        """

        if not self.is_current(ticket):
            logger.info(
                "stale_server_headers_discarded",
                ticket_mailbox=ticket.mailbox,
                ticket_generation=ticket.generation,
                mailbox=self.mailbox,
                generation=self._generation,
            )
            return False

        self._server_headers = list(headers)
        self.server_status = ServerListStatus.LOADED
        self._repository.save_header_snapshot(self.account_id, self.mailbox, self._server_headers)
        logger.info("server_headers_accepted", mailbox=self.mailbox, count=len(headers))
        return True

    def switch_mailbox(self, account_id: str, mailbox: str) -> None:
        """Open another mailbox; in-flight fetches for the old one go stale."""

        self._generation += 1
        self._switches += 1
        self.account_id = account_id
        self.mailbox = mailbox
        self._server_headers = []
        self.server_status = ServerListStatus.NOT_LOADED
        self.clear_search()
        self.load_local()
        logger.info("mailbox_switched", account_id=account_id, mailbox=mailbox)

    # Mutations

    def archive(self, header: EmailHeader, raw_source: bytes | None = None) -> None:
        """Keep a durable copy of a message.

        An already stored copy is only flagged; otherwise the header (and the
        raw source, when given) is stored as archived.
        """

        if raw_source is not None or not self._repository.archive(
            self.account_id, self.mailbox, header.id
        ):
            self._repository.put(
                self.account_id, self.mailbox, header, raw_source=raw_source, archived=True
            )
        self.load_local()

    def unarchive(self, message_id: str) -> bool:
        changed = self._repository.unarchive(self.account_id, self.mailbox, message_id)
        self.load_local()
        return changed

    def remove_cached_only(self, message_id: str) -> bool:
        removed = self._repository.remove_cached_only(self.account_id, self.mailbox, message_id)
        self.load_local()
        return removed

    def remove_local(self, message_id: str) -> bool:
        """Delete the local copy, archived or not."""

        removed = self._repository.delete(self.account_id, self.mailbox, message_id)
        self.load_local()
        return removed

    def apply_server_deletion(self, message_id: str) -> None:
        """Reflect a completed server-side delete.

        The persisted header snapshot is rewritten too; restoring a stale
        snapshot later would otherwise bring the message back as "server".
        Fetches started before the delete go stale for the same reason.
        """

        self._generation += 1
        self._server_headers = [h for h in self._server_headers if h.id != message_id]
        self._repository.save_header_snapshot(self.account_id, self.mailbox, self._server_headers)
        logger.info("server_deletion_applied", message_id=message_id, mailbox=self.mailbox)

    def apply_read_status(self, message_id: str, read: bool) -> None:
        """Reflect a completed read-status change. Older fetches go stale."""

        self._generation += 1
        self._server_headers = [
            _with_read_status(h, read) if h.id == message_id else h for h in self._server_headers
        ]
        if self._search_active:
            self._search_results = [
                _with_read_status(r, read) if r.id == message_id else r for r in self._search_results
            ]

    def set_view_mode(self, view_mode: ViewMode | str) -> None:
        self.view_mode = ViewMode(view_mode)

    def begin_search(self, results: Sequence[DisplayRecord]) -> None:
        self._search_active = True
        self._search_results = list(results)

    def clear_search(self) -> None:
        self._search_active = False
        self._search_results = []

    # Reconciliation

    def snapshot(self) -> ReconciliationSnapshot:
        """Capture every engine input at this instant."""

        return ReconciliationSnapshot(
            server_headers=tuple(self._server_headers),
            local_headers=tuple(self._local_headers),
            archived_ids=frozenset(self._archived_ids),
            view_mode=self.view_mode,
            search_active=self._search_active,
            search_results=tuple(self._search_results),
        )

    def display_records(self) -> list[DisplayRecord]:
        return list(reconcile(self.snapshot()))

    def find_header(self, message_id: str) -> EmailHeader | None:
        """Look a message up in the server list, then the local copies."""

        for header in (*self._server_headers, *self._local_headers):
            if header.id == message_id:
                return header
        return None


def _with_read_status(header: EmailHeader, read: bool) -> EmailHeader:
    flags = header.flags | {SEEN_FLAG} if read else header.flags - {SEEN_FLAG}
    return header.model_copy(update={"flags": frozenset(flags)})
