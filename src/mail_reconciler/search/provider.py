"""Merged search over the loaded server headers, the local archive and Gmail.

The provider returns a finalized, ordered list of display records. While a
search is active the reconciliation engine hands this list through untouched.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import Protocol

import structlog

from mail_reconciler.archive import LocalArchiveRepository
from mail_reconciler.exceptions import ArchiveStoreError, MailReconcilerError
from mail_reconciler.models import DisplayRecord, EmailHeader, Source
from mail_reconciler.reconcile import sort_newest_first
from mail_reconciler.search.filters import SearchFilters, SearchLocation

logger = structlog.get_logger()

# Higher wins when the same message is found by several legs.
_SOURCE_PRIORITY = {
    Source.LOCAL: 3,
    Source.LOCAL_ONLY: 3,
    Source.SERVER_SEARCH: 2,
    Source.SERVER: 1,
}


class RemoteSearcher(Protocol):
    async def search(self, query: str, folder: str | None = None) -> list[EmailHeader]: ...


class MailSearchProvider:
    """Search the loaded server list, the archive and optionally the server."""

    def __init__(
        self,
        repository: LocalArchiveRepository,
        account_id: str,
        *,
        remote: RemoteSearcher | None = None,
        limit: int = 200,
    ) -> None:
        self._repository = repository
        self._account_id = account_id
        self._remote = remote
        self._limit = limit

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        *,
        current_mailbox: str = "INBOX",
        server_headers: Iterable[EmailHeader] = (),
        archived_ids: Collection[str] = frozenset(),
    ) -> list[DisplayRecord]:
        """Run every applicable search leg and merge the hits.

        Args:
            query: Free text matched against subject and sender.
            filters: Location, folder, sender and date filters.
            current_mailbox: Mailbox that ``folder="current"`` refers to.
            server_headers: Headers already loaded from the server.
            archived_ids: Archived identifiers, used to flag server hits.

        Returns:
            Deduplicated display records, newest first. Empty when the query
            and filters together do not describe a search.
        """

        filters = filters or SearchFilters()
        if not filters.is_active(query):
            return []

        hits: list[DisplayRecord] = []

        if filters.location is not SearchLocation.LOCAL:
            memory_hits = [
                DisplayRecord.from_header(h, source=Source.SERVER, is_archived=h.id in archived_ids)
                for h in server_headers
                if filters.matches(h, query)
            ]
            logger.debug("search_memory_hits", count=len(memory_hits))
            hits.extend(memory_hits)

        if filters.location is not SearchLocation.SERVER:
            hits.extend(self._search_archive(query, filters, current_mailbox))

        if filters.location is not SearchLocation.LOCAL and self._remote is not None:
            hits.extend(await self._search_remote(query, filters, current_mailbox, archived_ids))

        results = sort_newest_first(_dedupe(hits))
        logger.info("search_completed", query=query, location=filters.location.value, count=len(results))
        return results

    def _search_archive(
        self, query: str, filters: SearchFilters, current_mailbox: str
    ) -> list[DisplayRecord]:
        try:
            stored = self._repository.search(
                self._account_id,
                query,
                mailbox=filters.resolve_mailbox(current_mailbox),
                sender=filters.sender,
                date_from=filters.date_from,
                date_to=filters.date_to,
                limit=self._limit,
            )
        except ArchiveStoreError as exc:
            logger.warning("search_archive_failed", error=str(exc))
            return []

        local_hits = [
            DisplayRecord.from_header(s.header, source=Source.LOCAL, is_archived=s.is_archived)
            for s in stored
        ]
        logger.debug("search_archive_hits", count=len(local_hits))
        return local_hits

    async def _search_remote(
        self,
        query: str,
        filters: SearchFilters,
        current_mailbox: str,
        archived_ids: Collection[str],
    ) -> list[DisplayRecord]:
        assert self._remote is not None
        mailbox = filters.resolve_mailbox(current_mailbox)
        try:
            headers = await self._remote.search(gmail_query(query, filters), mailbox)
        except MailReconcilerError as exc:
            # The local legs are still useful when the server is unreachable.
            logger.warning("search_remote_failed", error=str(exc))
            return []

        remote_hits = [
            DisplayRecord.from_header(h, source=Source.SERVER_SEARCH, is_archived=h.id in archived_ids)
            for h in headers
        ]
        logger.debug("search_remote_hits", count=len(remote_hits))
        return remote_hits


def gmail_query(query: str, filters: SearchFilters) -> str:
    """Translate query text and filters into Gmail search syntax."""

    parts = [query.strip()] if query.strip() else []
    if filters.sender:
        parts.append(f"from:{filters.sender}")
    if filters.date_from is not None:
        parts.append(f"after:{filters.date_from:%Y/%m/%d}")
    if filters.date_to is not None:
        parts.append(f"before:{filters.date_to:%Y/%m/%d}")
    return " ".join(parts)


def _dedupe(records: Iterable[DisplayRecord]) -> list[DisplayRecord]:
    seen: dict[str, DisplayRecord] = {}
    for record in records:
        existing = seen.get(record.id)
        if existing is None or _SOURCE_PRIORITY[record.source] > _SOURCE_PRIORITY[existing.source]:
            seen[record.id] = record
    return list(seen.values())
