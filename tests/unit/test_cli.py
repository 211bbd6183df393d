"""Unit tests for the offline CLI commands."""

from __future__ import annotations

import logging
import sys

import pytest
import structlog

from mail_reconciler.archive import LocalArchiveRepository
from mail_reconciler.cli import main
from mail_reconciler.config import get_settings

ACCOUNT = "cli-account"


@pytest.fixture
def db_path(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MAIL_RECONCILER_LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    # Keep stdout for command output only, also while the test seeds the archive.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
    yield tmp_path / "cli.sqlite3"
    get_settings.cache_clear()
    # main() points structlog at the captured stderr of this test.
    structlog.reset_defaults()


@pytest.fixture
def cli_repository(db_path) -> LocalArchiveRepository:
    repo = LocalArchiveRepository(db_path)
    repo.initialize()
    return repo


def run(db_path, *argv: str) -> int:
    return main(["--db", str(db_path), "--account", ACCOUNT, *argv])


def output_rows(capsys) -> list[list[str]]:
    return [line.split("\t") for line in capsys.readouterr().out.splitlines()]


def test_mailbox_list_renders_cache_and_archive(db_path, cli_repository, make_header, capsys) -> None:
    cli_repository.save_header_snapshot(ACCOUNT, "INBOX", [make_header("10", "Other")])
    cli_repository.put(ACCOUNT, "INBOX", make_header("5", "Archived email", date="2026-03-01T00:00:00Z"), archived=True)

    assert run(db_path, "mailbox", "list") == 0

    rows = output_rows(capsys)
    assert [(row[0], row[1], row[-1]) for row in rows] == [
        ("local-only", "ARCHIVED", "5"),
        ("server", "-", "10"),
    ]
    assert rows[0][3] == "luke@example.com"
    assert rows[0][4] == "Archived email"


def test_mailbox_list_local_mode(db_path, cli_repository, make_header, capsys) -> None:
    cli_repository.put(ACCOUNT, "INBOX", make_header("5"), archived=True)
    cli_repository.put(ACCOUNT, "INBOX", make_header("6"))

    assert run(db_path, "mailbox", "list", "--mode", "local") == 0

    assert [(row[0], row[-1]) for row in output_rows(capsys)] == [("local", "5")]


def test_archive_add_offline_uses_cached_header(db_path, cli_repository, make_header, capsys) -> None:
    cli_repository.save_header_snapshot(ACCOUNT, "INBOX", [make_header("10", "Other")])

    assert run(db_path, "archive", "add", "10", "--offline") == 0

    assert "Archived 10" in capsys.readouterr().out
    assert cli_repository.archived_ids(ACCOUNT, "INBOX") == {"10"}


def test_archive_add_offline_unknown_message(db_path, cli_repository, capsys) -> None:
    assert run(db_path, "archive", "add", "missing", "--offline") == 1

    assert "not found" in capsys.readouterr().err


def test_archive_remove_forget_and_delete(db_path, cli_repository, make_header) -> None:
    cli_repository.put(ACCOUNT, "INBOX", make_header("kept"), archived=True)
    cli_repository.put(ACCOUNT, "INBOX", make_header("cached"))

    assert run(db_path, "archive", "forget", "kept") == 1
    assert run(db_path, "archive", "forget", "cached") == 0
    assert run(db_path, "archive", "remove", "kept") == 0
    assert cli_repository.archived_ids(ACCOUNT, "INBOX") == set()
    assert run(db_path, "archive", "delete", "kept") == 0
    assert cli_repository.saved_ids(ACCOUNT, "INBOX") == set()


def test_archive_stats(db_path, cli_repository, make_header, capsys) -> None:
    cli_repository.put(ACCOUNT, "INBOX", make_header("1"), archived=True)
    cli_repository.put(ACCOUNT, "INBOX", make_header("2"))

    assert run(db_path, "archive", "stats") == 0

    out = capsys.readouterr().out
    assert "Stored messages: 2" in out
    assert "Archived: 1" in out
    assert "Cached only: 1" in out
    assert "Date range: 2026-02-10 -> 2026-02-10" in out


def test_search(db_path, cli_repository, make_header, capsys) -> None:
    cli_repository.save_header_snapshot(ACCOUNT, "INBOX", [make_header("10", "Invoice April")])
    cli_repository.put(ACCOUNT, "INBOX", make_header("5", "Invoice March"), archived=True)
    cli_repository.put(ACCOUNT, "INBOX", make_header("6", "Newsletter"), archived=True)

    assert run(db_path, "search", "invoice") == 0

    assert sorted((row[0], row[-1]) for row in output_rows(capsys)) == [
        ("local", "5"),
        ("server", "10"),
    ]


def test_search_without_query_or_filters(db_path, cli_repository, capsys) -> None:
    assert run(db_path, "search") == 2

    assert "Nothing to search for" in capsys.readouterr().err
