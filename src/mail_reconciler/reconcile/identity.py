"""Identity and provenance helpers used by the reconciliation engine."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from typing import TypeVar

from mail_reconciler.models import DisplayRecord, EmailHeader, Source

H = TypeVar("H", bound=EmailHeader)


def collapse_by_id(headers: Iterable[H]) -> dict[str, H]:
    """Index headers by identifier.

    A repeated identifier keeps the later-iterated header (last-seen-wins).
    """

    collapsed: dict[str, H] = {}
    for header in headers:
        collapsed[header.id] = header
    return collapsed


def is_confirmed_gone(message_id: str, server_ids: Collection[str]) -> bool:
    """True when the server list is loaded and does not contain the message.

    An empty server list cannot tell "folder empty" from "not fetched yet",
    so nothing counts as deleted until the list holds at least one header.
    """

    return len(server_ids) > 0 and message_id not in server_ids


def tag_server(header: EmailHeader, archived_ids: Collection[str]) -> DisplayRecord:
    return DisplayRecord.from_header(
        header,
        source=Source.SERVER,
        is_archived=header.id in archived_ids,
    )


def tag_archived(header: EmailHeader, server_ids: Collection[str]) -> DisplayRecord:
    """Tag an archived local header as local or local-only."""

    source = Source.LOCAL_ONLY if is_confirmed_gone(header.id, server_ids) else Source.LOCAL
    return DisplayRecord.from_header(header, source=source, is_archived=True)


def archived_only(
    local_headers: Mapping[str, EmailHeader], archived_ids: Collection[str]
) -> list[EmailHeader]:
    """Local headers the user archived; opportunistically cached copies are dropped."""

    return [header for message_id, header in local_headers.items() if message_id in archived_ids]
