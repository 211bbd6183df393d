"""Gmail API client implementation.

This module provides a client for interacting with the Gmail API.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import structlog

from mail_reconciler.config import Settings
from mail_reconciler.exceptions import AuthenticationError, ConfigurationError, RemoteMailboxError
from mail_reconciler.utils import is_transient_error, retry_on_failure

logger = structlog.get_logger()


class GmailClient:
    """Gmail API client for mailbox operations.

    This client handles authentication, message listing and retrieval,
    and the few mutations the client performs (trash, label changes).
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
        """
        from mail_reconciler.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = None
        logger.info("gmail_client_initialized")

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails.
        """

        if self._service is not None:
            return

        credentials_path = Path(self.settings.gmail_credentials_path)
        token_path = Path(self.settings.gmail_token_path)
        scope = self.settings.gmail_scope

        if not credentials_path.exists():
            raise ConfigurationError(
                f"Gmail credentials file not found: {credentials_path}. "
                "See README.md -> Gmail API Setup."
            )

        logger.info(
            "gmail_authentication_started",
            credentials_path=str(credentials_path),
            token_path=str(token_path),
            scope=scope,
        )

        try:
            self._service = await asyncio.to_thread(
                self._build_service,
                credentials_path,
                token_path,
                scope,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def list_messages(
        self,
        max_results: int | None = None,
        query: str | None = None,
        label_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """List messages from Gmail.

        Args:
            max_results: Maximum number of messages to return.
            query: Gmail search query string.
            label_ids: Only return messages carrying all of these labels.

        Returns:
            List of message stubs (``id`` and ``threadId``), newest first.

        Raises:
            RemoteMailboxError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info(
            "listing_messages",
            max_results="all" if max_results is None else max_results,
            query=query,
            label_ids=label_ids,
        )

        return await self._run("list_messages", self._list_messages_sync, max_results, query, label_ids)

    async def get_message(
        self,
        message_id: str,
        *,
        format: str = "metadata",
        metadata_headers: list[str] | None = None,
    ) -> dict[str, Any]:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: Gmail response format (``metadata``, ``raw``, ``full``).
            metadata_headers: Headers to include when format is ``metadata``.

        Returns:
            Message data dictionary.

        Raises:
            RemoteMailboxError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.debug("getting_message", message_id=message_id, format=format)

        return await self._run(
            "get_message",
            self._get_message_sync,
            message_id,
            format,
            metadata_headers,
            message_id=message_id,
        )

    async def trash_message(self, message_id: str) -> None:
        """Move a message to the Gmail trash.

        Raises:
            RemoteMailboxError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info("trashing_message", message_id=message_id)
        await self._run("trash_message", self._trash_message_sync, message_id, message_id=message_id)

    async def modify_labels(
        self,
        message_id: str,
        *,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> dict[str, Any]:
        """Add and remove labels on a message.

        Raises:
            RemoteMailboxError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info("modifying_labels", message_id=message_id, add=add, remove=remove)
        return await self._run(
            "modify_labels",
            self._modify_labels_sync,
            message_id,
            add or [],
            remove or [],
            message_id=message_id,
        )

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    async def _run(self, operation: str, func: Callable[..., Any], *args: Any, **context: Any) -> Any:
        retrying = retry_on_failure(
            max_retries=self.settings.max_retries, should_retry=is_transient_error
        )(func)
        try:
            return await asyncio.to_thread(retrying, *args)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"gmail_{operation}_failed", error=str(exc), **context)
            raise RemoteMailboxError(str(exc)) from exc

    def _build_service(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if creds is None or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _list_messages_sync(
        self,
        max_results: int | None,
        query: str | None,
        label_ids: list[str] | None,
    ) -> list[dict[str, Any]]:
        assert self._service is not None
        user_id = "me"
        messages: list[dict[str, Any]] = []

        page_token: str | None = None
        while True:
            if max_results is not None and len(messages) >= max_results:
                break

            remaining = None if max_results is None else max_results - len(messages)
            per_page = 500 if remaining is None else min(500, remaining)

            request = (
                self._service.users()
                .messages()
                .list(
                    userId=user_id,
                    maxResults=per_page,
                    q=query,
                    labelIds=label_ids,
                    pageToken=page_token,
                )
            )
            response = request.execute()
            messages.extend(response.get("messages", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return messages if max_results is None else messages[:max_results]

    def _get_message_sync(
        self,
        message_id: str,
        format: str,
        metadata_headers: list[str] | None,
    ) -> dict[str, Any]:
        assert self._service is not None
        request = (
            self._service.users()
            .messages()
            .get(userId="me", id=message_id, format=format, metadataHeaders=metadata_headers)
        )
        return request.execute()

    def _trash_message_sync(self, message_id: str) -> dict[str, Any]:
        assert self._service is not None
        return self._service.users().messages().trash(userId="me", id=message_id).execute()

    def _modify_labels_sync(self, message_id: str, add: list[str], remove: list[str]) -> dict[str, Any]:
        assert self._service is not None
        body = {"addLabelIds": add, "removeLabelIds": remove}
        return self._service.users().messages().modify(userId="me", id=message_id, body=body).execute()
