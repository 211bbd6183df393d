"""Integration tests against a real Gmail account.

These run only when OAuth client credentials and a cached token are present
(``MAIL_RECONCILER_GMAIL_CREDENTIALS_PATH`` / ``MAIL_RECONCILER_GMAIL_TOKEN_PATH``).
They never modify the mailbox.
"""

from pathlib import Path

import pytest

from mail_reconciler.config import Settings
from mail_reconciler.gmail import GmailClient, GmailMailboxProvider
from mail_reconciler.models import Source
from mail_reconciler.state import MailboxController, MailboxState, ServerListStatus

_settings = Settings()

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not (Path(_settings.gmail_credentials_path).exists() and Path(_settings.gmail_token_path).exists()),
        reason="Gmail credentials or token not available",
    ),
]


@pytest.mark.asyncio
async def test_list_inbox_headers() -> None:
    client = GmailClient(_settings)
    await client.authenticate()
    provider = GmailMailboxProvider(client, max_results=5)

    headers = await provider.list_current("INBOX")

    assert len(headers) <= 5
    assert all(h.id for h in headers)


@pytest.mark.asyncio
async def test_refresh_renders_server_records(tmp_path) -> None:
    from mail_reconciler.archive import LocalArchiveRepository

    repo = LocalArchiveRepository(tmp_path / "archive.sqlite3")
    repo.initialize()
    client = GmailClient(_settings)
    await client.authenticate()
    controller = MailboxController(
        MailboxState(repo, "integration", "INBOX"),
        GmailMailboxProvider(client, max_results=5),
    )

    assert await controller.refresh() is True

    assert controller.state.server_status is ServerListStatus.LOADED
    assert all(r.source is Source.SERVER for r in controller.display())
