"""Async controller tying the Gmail provider and the local archive to the view."""

from __future__ import annotations

from typing import Protocol

import structlog

from mail_reconciler.exceptions import MailReconcilerError
from mail_reconciler.models import DisplayRecord, EmailHeader
from mail_reconciler.search import MailSearchProvider, SearchFilters
from mail_reconciler.state.mailbox import MailboxState

logger = structlog.get_logger()


class MailboxProvider(Protocol):
    async def list_current(self, folder: str) -> list[EmailHeader]: ...

    async def fetch_raw(self, message_id: str) -> bytes: ...

    async def delete(self, message_id: str) -> None: ...

    async def set_read(self, message_id: str, read: bool) -> None: ...


class MailboxController:
    """Runs remote operations and feeds their outcome into the state holder.

    Remote calls may fail; a failed refresh leaves the previous inputs in
    place, so the view falls back to what is already known (cached server
    headers and local copies). A failed mutation leaves state untouched and
    re-raises.
    """

    def __init__(
        self,
        state: MailboxState,
        provider: MailboxProvider | None = None,
        search_provider: MailSearchProvider | None = None,
    ) -> None:
        self.state = state
        self._provider = provider
        self._search_provider = search_provider

    def open(self) -> list[DisplayRecord]:
        """Load local inputs and any cached server list, without network access."""

        self.state.load_local()
        self.state.restore_cached_headers()
        return self.display()

    async def refresh(self) -> bool:
        """Fetch the current server list for the open mailbox.

        Returns:
            True if fresh headers were installed.
        """

        if self._provider is None:
            return False

        ticket = self.state.begin_fetch()
        try:
            headers = await self._provider.list_current(ticket.mailbox)
        except MailReconcilerError as exc:
            logger.warning(
                "mailbox_refresh_failed",
                mailbox=ticket.mailbox,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False

        return self.state.accept_server_headers(ticket, headers)

    async def archive(self, message_id: str) -> None:
        """Keep a durable copy.

        A message that is already stored locally is only flagged; otherwise
        its full source is downloaded first when a provider is available.
        """

        header = self.state.find_header(message_id)
        if header is None:
            raise KeyError(message_id)

        raw_source = None
        if self._provider is not None and not self.state.is_stored(message_id):
            try:
                raw_source = await self._provider.fetch_raw(message_id)
            except MailReconcilerError as exc:
                logger.exception("archive_fetch_failed", message_id=message_id, error=str(exc))
                raise

        self.state.archive(header, raw_source)

    def unarchive(self, message_id: str) -> bool:
        return self.state.unarchive(message_id)

    async def delete_from_server(self, message_id: str) -> None:
        provider = self._require_provider()
        try:
            await provider.delete(message_id)
        except MailReconcilerError as exc:
            logger.exception("server_delete_failed", message_id=message_id, error=str(exc))
            raise

        self.state.apply_server_deletion(message_id)

    async def mark_read(self, message_id: str, read: bool) -> None:
        provider = self._require_provider()
        try:
            await provider.set_read(message_id, read)
        except MailReconcilerError as exc:
            logger.exception("read_status_update_failed", message_id=message_id, error=str(exc))
            raise

        self.state.apply_read_status(message_id, read)

    async def search(self, query: str, filters: SearchFilters | None = None) -> list[DisplayRecord]:
        """Run a search and show its results until :meth:`clear_search`."""

        filters = filters or SearchFilters()
        if self._search_provider is None or not filters.is_active(query):
            self.state.clear_search()
            return self.display()

        epoch = self.state.mailbox_epoch
        mailbox = self.state.mailbox
        results = await self._search_provider.search(
            query,
            filters,
            current_mailbox=mailbox,
            server_headers=self.state.server_headers,
            archived_ids=self.state.archived_ids,
        )
        if epoch != self.state.mailbox_epoch:
            logger.info(
                "stale_search_results_discarded",
                search_mailbox=mailbox,
                mailbox=self.state.mailbox,
                count=len(results),
            )
            return self.display()

        self.state.begin_search(results)
        return self.display()

    def clear_search(self) -> list[DisplayRecord]:
        self.state.clear_search()
        return self.display()

    def display(self) -> list[DisplayRecord]:
        return self.state.display_records()

    def _require_provider(self) -> MailboxProvider:
        if self._provider is None:
            raise RuntimeError("No mailbox provider configured; this controller is offline.")
        return self._provider
