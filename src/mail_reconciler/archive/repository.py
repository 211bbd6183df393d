"""SQLite-backed local archive of email headers and raw sources.

Every message the client has stored locally lives in ``local_messages``. A
row is either *archived* (the user asked to keep it, and it must survive
deletion on the server) or merely *cached* (stored opportunistically, may be
dropped at any time). Only archived rows are eligible to appear in the local
views.

The database also keeps the last server header list per mailbox so the client
can render something at startup before the first fetch completes.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog

from mail_reconciler.exceptions import ArchiveStoreError
from mail_reconciler.models import EmailAddress, EmailHeader
from mail_reconciler.reconcile.sorting import MISSING_TIMESTAMP, timestamp_of

logger = structlog.get_logger()


_SCHEMA_VERSION = 1

_HEADER_COLUMNS = """
    m.account_id,
    m.mailbox,
    m.message_id,
    m.thread_id,
    m.subject,
    m.from_address,
    m.from_name,
    m.date_iso,
    m.internal_date_ms,
    m.flags_json,
    m.is_archived,
    m.saved_at_iso
"""


@dataclass(frozen=True)
class StoredMessage:
    """A locally stored message and its archival status."""

    account_id: str
    mailbox: str
    header: EmailHeader
    is_archived: bool
    saved_at: datetime
    raw_source: bytes | None = None


@dataclass(frozen=True)
class HeaderSnapshot:
    """The last server header list persisted for a mailbox."""

    headers: list[EmailHeader]
    total: int
    last_synced: datetime


@dataclass(frozen=True)
class ArchiveStats:
    """High-level summary stats for one account."""

    total_messages: int
    archived_messages: int
    cached_only_messages: int
    min_date: datetime | None
    max_date: datetime | None


class LocalArchiveRepository:
    """Repository for locally archived and cached messages."""

    def __init__(self, db_path: Path) -> None:
        """Create a repository.

        Args:
            db_path: Path to the SQLite database file.
        """

        self._db_path = db_path

    def initialize(self) -> None:
        """Create or upgrade the archive schema."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version is None:
                self._create_schema_v1(conn)
                self._set_schema_version(conn, _SCHEMA_VERSION)
                conn.commit()
                logger.info("archive_schema_created", version=_SCHEMA_VERSION)
                return

            if current_version != _SCHEMA_VERSION:
                raise ArchiveStoreError(
                    f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                )

    def put(
        self,
        account_id: str,
        mailbox: str,
        header: EmailHeader,
        *,
        raw_source: bytes | None = None,
        archived: bool = False,
    ) -> None:
        """Store one message. See :meth:`put_many`."""

        self.put_many(account_id, mailbox, [header], raw_source=raw_source, archived=archived)

    def put_many(
        self,
        account_id: str,
        mailbox: str,
        headers: list[EmailHeader],
        *,
        raw_source: bytes | None = None,
        archived: bool = False,
    ) -> None:
        """Upsert a batch of messages.

        An upsert never clears an archived flag and never drops a raw source
        that was stored earlier.
        """

        if not headers:
            return

        now_iso = datetime.now(timezone.utc).isoformat()

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO local_messages (
                    account_id,
                    mailbox,
                    message_id,
                    thread_id,
                    subject,
                    from_address,
                    from_name,
                    date_iso,
                    internal_date_ms,
                    sort_ts,
                    flags_json,
                    raw_source,
                    is_archived,
                    saved_at_iso,
                    updated_at_iso
                )
                VALUES (
                    :account_id,
                    :mailbox,
                    :message_id,
                    :thread_id,
                    :subject,
                    :from_address,
                    :from_name,
                    :date_iso,
                    :internal_date_ms,
                    :sort_ts,
                    :flags_json,
                    :raw_source,
                    :is_archived,
                    :now_iso,
                    :now_iso
                )
                ON CONFLICT(account_id, mailbox, message_id) DO UPDATE SET
                    thread_id=excluded.thread_id,
                    subject=excluded.subject,
                    from_address=excluded.from_address,
                    from_name=excluded.from_name,
                    date_iso=excluded.date_iso,
                    internal_date_ms=excluded.internal_date_ms,
                    sort_ts=excluded.sort_ts,
                    flags_json=excluded.flags_json,
                    raw_source=COALESCE(excluded.raw_source, local_messages.raw_source),
                    is_archived=MAX(local_messages.is_archived, excluded.is_archived),
                    updated_at_iso=excluded.updated_at_iso
                """,
                [
                    {
                        "account_id": account_id,
                        "mailbox": mailbox,
                        "message_id": h.id,
                        "thread_id": h.thread_id,
                        "subject": h.subject,
                        "from_address": h.sender.address,
                        "from_name": h.sender.name,
                        "date_iso": h.date.isoformat() if h.date else None,
                        "internal_date_ms": h.internal_date_ms,
                        "sort_ts": _sort_ts(h),
                        "flags_json": json.dumps(sorted(h.flags)),
                        "raw_source": raw_source,
                        "is_archived": 1 if archived else 0,
                        "now_iso": now_iso,
                    }
                    for h in headers
                ],
            )
            conn.commit()

        logger.debug(
            "archive_messages_stored",
            account_id=account_id,
            mailbox=mailbox,
            count=len(headers),
            archived=archived,
        )

    def get(self, account_id: str, mailbox: str, message_id: str) -> StoredMessage | None:
        """Return a stored message, including its raw source, or None."""

        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_HEADER_COLUMNS}, m.raw_source
                FROM local_messages m
                WHERE m.account_id = ? AND m.mailbox = ? AND m.message_id = ?;
                """,
                (account_id, mailbox, message_id),
            ).fetchone()

        if row is None:
            return None
        return self._row_to_stored(row, raw_source=row["raw_source"])

    def get_all(self, account_id: str, mailbox: str) -> list[EmailHeader]:
        """Every locally stored header for a mailbox, archived or not."""

        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_HEADER_COLUMNS}
                FROM local_messages m
                WHERE m.account_id = ? AND m.mailbox = ?
                ORDER BY m.rowid;
                """,
                (account_id, mailbox),
            ).fetchall()

        return [self._row_to_header(row) for row in rows]

    def archived_ids(self, account_id: str, mailbox: str) -> set[str]:
        """Identifiers of messages the user archived in a mailbox."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT message_id
                FROM local_messages
                WHERE account_id = ? AND mailbox = ? AND is_archived = 1;
                """,
                (account_id, mailbox),
            ).fetchall()

        return {row[0] for row in rows}

    def saved_ids(self, account_id: str, mailbox: str) -> set[str]:
        """Identifiers of every locally stored message in a mailbox."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT message_id FROM local_messages WHERE account_id = ? AND mailbox = ?;",
                (account_id, mailbox),
            ).fetchall()

        return {row[0] for row in rows}

    def archive(self, account_id: str, mailbox: str, message_id: str) -> bool:
        """Mark an already stored message as archived.

        Returns:
            False if nothing is stored under this identifier; store it with
            ``put(..., archived=True)`` instead.
        """

        changed = self._set_archived(account_id, mailbox, message_id, True)
        logger.info("archive_message_archived", message_id=message_id, mailbox=mailbox, stored=changed)
        return changed

    def unarchive(self, account_id: str, mailbox: str, message_id: str) -> bool:
        """Clear the archived flag. The cached copy stays."""

        changed = self._set_archived(account_id, mailbox, message_id, False)
        logger.info("archive_message_unarchived", message_id=message_id, mailbox=mailbox, stored=changed)
        return changed

    def remove_cached_only(self, account_id: str, mailbox: str, message_id: str) -> bool:
        """Delete a stored copy unless the user archived it."""

        with self._connect() as conn:
            cursor = conn.execute(
                """
                DELETE FROM local_messages
                WHERE account_id = ? AND mailbox = ? AND message_id = ? AND is_archived = 0;
                """,
                (account_id, mailbox, message_id),
            )
            conn.commit()

        return cursor.rowcount > 0

    def delete(self, account_id: str, mailbox: str, message_id: str) -> bool:
        """Delete a stored copy whether or not it is archived."""

        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM local_messages WHERE account_id = ? AND mailbox = ? AND message_id = ?;",
                (account_id, mailbox, message_id),
            )
            conn.commit()

        removed = cursor.rowcount > 0
        logger.info("archive_message_deleted", message_id=message_id, mailbox=mailbox, removed=removed)
        return removed

    def search(
        self,
        account_id: str,
        query: str,
        *,
        mailbox: str | None = None,
        sender: str = "",
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 200,
    ) -> list[StoredMessage]:
        """Search stored messages by subject and sender using SQLite FTS5.

        Args:
            account_id: Account scope.
            query: Free text. Each word is matched as a prefix; an empty query
                matches everything.
            mailbox: Restrict to one mailbox, or None for all mailboxes.
            sender: Case-insensitive substring of the sender address or name.
            date_from: Earliest message date; undated messages never match.
            date_to: Latest message date; undated messages never match.
            limit: Max results, applied after every filter.

        Returns:
            Matching stored messages, without raw sources.
        """

        match = _fts_query(query)
        clauses = ["m.account_id = ?"]
        params: list[object] = [account_id]
        if mailbox is not None:
            clauses.append("m.mailbox = ?")
            params.append(mailbox)
        if sender:
            clauses.append(
                "(LOWER(m.from_address) LIKE ? ESCAPE '\\' OR LOWER(m.from_name) LIKE ? ESCAPE '\\')"
            )
            pattern = f"%{_like_escape(sender.lower())}%"
            params.extend([pattern, pattern])
        if date_from is not None:
            clauses.append("m.sort_ts >= ?")
            params.append(_as_utc(date_from).timestamp())
        if date_to is not None:
            clauses.append("m.sort_ts <= ?")
            params.append(_as_utc(date_to).timestamp())

        if match:
            sql = f"""
                SELECT {_HEADER_COLUMNS}
                FROM local_messages_fts
                JOIN local_messages m ON m.rowid = local_messages_fts.rowid
                WHERE local_messages_fts MATCH ? AND {" AND ".join(clauses)}
                ORDER BY bm25(local_messages_fts)
                LIMIT ?;
            """
            params = [match, *params, limit]
        else:
            sql = f"""
                SELECT {_HEADER_COLUMNS}
                FROM local_messages m
                WHERE {" AND ".join(clauses)}
                ORDER BY m.rowid
                LIMIT ?;
            """
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [self._row_to_stored(row) for row in rows]

    def stats(self, account_id: str) -> ArchiveStats:
        """Compute high-level stats for one account."""

        with self._connect() as conn:
            total, archived, min_iso, max_iso = conn.execute(
                """
                SELECT COUNT(*), SUM(is_archived), MIN(date_iso), MAX(date_iso)
                FROM local_messages
                WHERE account_id = ?;
                """,
                (account_id,),
            ).fetchone()

        total_messages = int(total or 0)
        archived_messages = int(archived or 0)
        return ArchiveStats(
            total_messages=total_messages,
            archived_messages=archived_messages,
            cached_only_messages=total_messages - archived_messages,
            min_date=datetime.fromisoformat(min_iso) if min_iso else None,
            max_date=datetime.fromisoformat(max_iso) if max_iso else None,
        )

    # Header snapshots (quick-load cache of the last server list)

    def save_header_snapshot(
        self,
        account_id: str,
        mailbox: str,
        headers: list[EmailHeader],
        total: int | None = None,
    ) -> HeaderSnapshot:
        """Replace the cached server header list for a mailbox."""

        last_synced = datetime.now(timezone.utc)
        payload = json.dumps([h.model_dump(mode="json", by_alias=True) for h in headers])

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO header_snapshots (account_id, mailbox, headers_json, total, last_synced_iso)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(account_id, mailbox) DO UPDATE SET
                    headers_json=excluded.headers_json,
                    total=excluded.total,
                    last_synced_iso=excluded.last_synced_iso;
                """,
                (
                    account_id,
                    mailbox,
                    payload,
                    len(headers) if total is None else total,
                    last_synced.isoformat(),
                ),
            )
            conn.commit()

        logger.debug("header_snapshot_saved", account_id=account_id, mailbox=mailbox, count=len(headers))
        return HeaderSnapshot(
            headers=list(headers),
            total=len(headers) if total is None else total,
            last_synced=last_synced,
        )

    def load_header_snapshot(self, account_id: str, mailbox: str) -> HeaderSnapshot | None:
        """Return the cached server header list for a mailbox, if any."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT headers_json, total, last_synced_iso
                FROM header_snapshots
                WHERE account_id = ? AND mailbox = ?;
                """,
                (account_id, mailbox),
            ).fetchone()

        if row is None:
            return None

        return HeaderSnapshot(
            headers=[EmailHeader.model_validate(item) for item in json.loads(row["headers_json"])],
            total=int(row["total"]),
            last_synced=datetime.fromisoformat(row["last_synced_iso"]),
        )

    def clear_header_snapshots(self, account_id: str | None = None) -> int:
        """Drop cached server header lists for one account, or for all accounts."""

        with self._connect() as conn:
            if account_id is None:
                cursor = conn.execute("DELETE FROM header_snapshots;")
            else:
                cursor = conn.execute("DELETE FROM header_snapshots WHERE account_id = ?;", (account_id,))
            conn.commit()

        return cursor.rowcount

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise ArchiveStoreError(f"Cannot open archive database {self._db_path}: {exc}") from exc
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as exc:
            logger.exception("archive_store_failed", db_path=str(self._db_path), error=str(exc))
            raise ArchiveStoreError(str(exc)) from exc
        finally:
            conn.close()

    def _set_archived(self, account_id: str, mailbox: str, message_id: str, archived: bool) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE local_messages
                SET is_archived = ?, updated_at_iso = ?
                WHERE account_id = ? AND mailbox = ? AND message_id = ?;
                """,
                (
                    1 if archived else 0,
                    datetime.now(timezone.utc).isoformat(),
                    account_id,
                    mailbox,
                    message_id,
                ),
            )
            conn.commit()

        return cursor.rowcount > 0

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS local_messages (
                rowid INTEGER PRIMARY KEY,
                account_id TEXT NOT NULL,
                mailbox TEXT NOT NULL,
                message_id TEXT NOT NULL,
                thread_id TEXT,
                subject TEXT,
                from_address TEXT,
                from_name TEXT,
                date_iso TEXT,
                internal_date_ms INTEGER,
                sort_ts REAL,
                flags_json TEXT NOT NULL,
                raw_source BLOB,
                is_archived INTEGER NOT NULL DEFAULT 0,
                saved_at_iso TEXT NOT NULL,
                updated_at_iso TEXT NOT NULL,
                UNIQUE(account_id, mailbox, message_id)
            );

            CREATE INDEX IF NOT EXISTS idx_local_messages_archived
                ON local_messages(account_id, mailbox, is_archived);

            CREATE TABLE IF NOT EXISTS header_snapshots (
                account_id TEXT NOT NULL,
                mailbox TEXT NOT NULL,
                headers_json TEXT NOT NULL,
                total INTEGER NOT NULL,
                last_synced_iso TEXT NOT NULL,
                PRIMARY KEY (account_id, mailbox)
            );

            CREATE VIRTUAL TABLE IF NOT EXISTS local_messages_fts USING fts5(
                subject,
                from_address,
                from_name,
                content='local_messages',
                content_rowid='rowid'
            );

            CREATE TRIGGER IF NOT EXISTS local_messages_ai
            AFTER INSERT ON local_messages
            BEGIN
                INSERT INTO local_messages_fts(rowid, subject, from_address, from_name)
                VALUES (new.rowid, new.subject, new.from_address, new.from_name);
            END;

            CREATE TRIGGER IF NOT EXISTS local_messages_ad
            AFTER DELETE ON local_messages
            BEGIN
                INSERT INTO local_messages_fts(local_messages_fts, rowid, subject, from_address, from_name)
                VALUES('delete', old.rowid, old.subject, old.from_address, old.from_name);
            END;

            CREATE TRIGGER IF NOT EXISTS local_messages_au
            AFTER UPDATE OF subject, from_address, from_name ON local_messages
            BEGIN
                INSERT INTO local_messages_fts(local_messages_fts, rowid, subject, from_address, from_name)
                VALUES('delete', old.rowid, old.subject, old.from_address, old.from_name);

                INSERT INTO local_messages_fts(rowid, subject, from_address, from_name)
                VALUES (new.rowid, new.subject, new.from_address, new.from_name);
            END;
            """
        )

    def _row_to_header(self, row: sqlite3.Row) -> EmailHeader:
        date = datetime.fromisoformat(row["date_iso"]) if row["date_iso"] else None

        return EmailHeader(
            id=row["message_id"],
            thread_id=row["thread_id"],
            subject=row["subject"] or "",
            date=date,
            internal_date_ms=row["internal_date_ms"],
            sender=EmailAddress(address=row["from_address"] or "", name=row["from_name"]),
            flags=frozenset(json.loads(row["flags_json"])),
        )

    def _row_to_stored(self, row: sqlite3.Row, raw_source: bytes | None = None) -> StoredMessage:
        return StoredMessage(
            account_id=row["account_id"],
            mailbox=row["mailbox"],
            header=self._row_to_header(row),
            is_archived=bool(row["is_archived"]),
            saved_at=datetime.fromisoformat(row["saved_at_iso"]),
            raw_source=raw_source,
        )


def _fts_query(query: str) -> str:
    """Turn free text into an FTS5 query of quoted prefix terms."""

    terms = [term.replace('"', '""') for term in query.split()]
    return " ".join(f'"{term}"*' for term in terms if term)


def _like_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _sort_ts(header: EmailHeader) -> float | None:
    # NULL for undated messages so date filters exclude them.
    ts = timestamp_of(header)
    return None if ts == MISSING_TIMESTAMP else ts
