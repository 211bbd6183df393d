"""Gmail-backed mailbox snapshot provider.

A "folder" here is a Gmail label ID (``INBOX``, ``SENT``, or a user label).
"""

from __future__ import annotations

import structlog

from mail_reconciler.gmail.client import GmailClient
from mail_reconciler.gmail.parsing import METADATA_HEADERS, decode_raw_source, message_to_email_header
from mail_reconciler.models import EmailHeader

logger = structlog.get_logger()


class GmailMailboxProvider:
    """Lists and mutates the remote side of a mailbox."""

    def __init__(self, client: GmailClient, *, max_results: int | None = None) -> None:
        self._client = client
        self._max_results = max_results if max_results is not None else client.settings.gmail_max_results

    async def list_current(self, folder: str) -> list[EmailHeader]:
        """Return the headers the server currently reports for a folder.

        Raises:
            RemoteMailboxError: On transport or protocol failure.
            AuthenticationError: If the client is not authenticated.
        """

        stubs = await self._client.list_messages(max_results=self._max_results, label_ids=[folder])
        headers = await self._fetch_headers(stubs)
        logger.info("mailbox_listed", folder=folder, count=len(headers))
        return headers

    async def search(self, query: str, folder: str | None = None) -> list[EmailHeader]:
        """Run a Gmail search, optionally restricted to one folder."""

        stubs = await self._client.list_messages(
            max_results=self._max_results,
            query=query,
            label_ids=[folder] if folder else None,
        )
        return await self._fetch_headers(stubs)

    async def fetch_raw(self, message_id: str) -> bytes:
        """Download the full RFC 822 source of a message."""

        message = await self._client.get_message(message_id, format="raw")
        return decode_raw_source(message)

    async def delete(self, message_id: str) -> None:
        await self._client.trash_message(message_id)

    async def set_read(self, message_id: str, read: bool) -> None:
        if read:
            await self._client.modify_labels(message_id, remove=["UNREAD"])
        else:
            await self._client.modify_labels(message_id, add=["UNREAD"])

    async def _fetch_headers(self, stubs: list[dict]) -> list[EmailHeader]:
        headers: list[EmailHeader] = []
        for stub in stubs:
            message_id = stub.get("id")
            if not isinstance(message_id, str) or not message_id:
                continue

            raw = await self._client.get_message(
                message_id, format="metadata", metadata_headers=METADATA_HEADERS
            )
            header = message_to_email_header(raw)
            if header.id:
                headers.append(header)
        return headers
