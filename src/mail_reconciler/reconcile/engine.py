"""Reconciliation of server, archive and search views into one display list.

The engine is a pure function over a snapshot of three independently changing
inputs:

* the server headers the remote mailbox currently reports,
* the headers stored locally, with the subset the user archived,
* the results of an active search, if any.

It never mutates its inputs, performs no I/O and keeps no state between calls,
so the same snapshot always yields an equal list. Assembling a consistent
snapshot (and discarding stale fetch results) is the caller's job; see
``mail_reconciler.state.MailboxState``.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field

from mail_reconciler.models import DisplayRecord, EmailHeader, ViewMode
from mail_reconciler.reconcile.identity import (
    archived_only,
    collapse_by_id,
    tag_archived,
    tag_server,
)
from mail_reconciler.reconcile.sorting import sort_newest_first


@dataclass(frozen=True)
class ReconciliationSnapshot:
    """Point-in-time values of every engine input."""

    server_headers: tuple[EmailHeader, ...] = ()
    local_headers: tuple[EmailHeader, ...] = ()
    archived_ids: frozenset[str] = frozenset()
    view_mode: ViewMode = ViewMode.ALL
    search_active: bool = False
    search_results: Sequence[DisplayRecord] = field(default_factory=list)


def compute_display_records(
    *,
    search_active: bool,
    search_results: Sequence[DisplayRecord],
    server_headers: Iterable[EmailHeader],
    local_headers: Iterable[EmailHeader],
    archived_ids: Collection[str],
    view_mode: ViewMode | str,
) -> Sequence[DisplayRecord]:
    """Compute the ordered display list for one snapshot.

    Args:
        search_active: When true, ``search_results`` is returned as-is.
        search_results: Finalized, already ordered search results.
        server_headers: Current remote snapshot. An empty list means "not
            confirmed", so nothing is tagged local-only against it.
        local_headers: Every locally stored header, archived or not.
        archived_ids: Identifiers of user-archived local copies.
        view_mode: ``server``, ``local`` or ``all``.

    Returns:
        Display records sorted newest first (ties by ascending identifier),
        or ``search_results`` itself while a search is active.
    """

    if search_active:
        return search_results

    mode = ViewMode(view_mode)
    server = collapse_by_id(server_headers)

    if mode is ViewMode.SERVER:
        records = [tag_server(header, archived_ids) for header in server.values()]
        return sort_newest_first(records)

    archived = archived_only(collapse_by_id(local_headers), archived_ids)

    if mode is ViewMode.LOCAL:
        records = [tag_archived(header, server) for header in archived]
        return sort_newest_first(records)

    records = [tag_server(header, archived_ids) for header in server.values()]
    # Archived copies still on the server are already represented above.
    records.extend(tag_archived(header, server) for header in archived if header.id not in server)
    return sort_newest_first(records)


def reconcile(snapshot: ReconciliationSnapshot) -> Sequence[DisplayRecord]:
    """Run :func:`compute_display_records` over a captured snapshot."""

    return compute_display_records(
        search_active=snapshot.search_active,
        search_results=snapshot.search_results,
        server_headers=snapshot.server_headers,
        local_headers=snapshot.local_headers,
        archived_ids=snapshot.archived_ids,
        view_mode=snapshot.view_mode,
    )
