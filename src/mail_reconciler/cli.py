"""Command-line interface for Mail Reconciler.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import structlog

from mail_reconciler import __version__
from mail_reconciler.archive import LocalArchiveRepository
from mail_reconciler.config import Settings, get_settings
from mail_reconciler.gmail import GmailClient, GmailMailboxProvider
from mail_reconciler.models import DisplayRecord, ViewMode
from mail_reconciler.search import MailSearchProvider, SearchFilters, SearchLocation
from mail_reconciler.state import MailboxController, MailboxState

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mail-reconciler", description="Mail Reconciler")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite archive database (default: settings archive_db_path)",
    )
    parser.add_argument(
        "--account",
        default=None,
        help="Account scope for local storage (default: settings account_id)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Mailbox commands
    mailbox_parser = subparsers.add_parser("mailbox", help="Show the reconciled message list")
    mailbox_sub = mailbox_parser.add_subparsers(dest="mailbox_command", required=True)

    list_parser = mailbox_sub.add_parser(
        "list", help="Render from the archive and the cached server list (offline)"
    )
    sync_parser = mailbox_sub.add_parser("sync", help="Fetch the server list from Gmail, then render")
    for p in (list_parser, sync_parser):
        p.add_argument("--mailbox", default=None, help="Mailbox / Gmail label (default: settings)")
        p.add_argument(
            "--mode",
            choices=[m.value for m in ViewMode],
            default=None,
            help="View mode (default: settings default_view_mode)",
        )
    sync_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Max messages to fetch (default: settings gmail_max_results)",
    )

    # Archive commands
    archive_parser = subparsers.add_parser("archive", help="Manage durable local copies")
    archive_sub = archive_parser.add_subparsers(dest="archive_command", required=True)

    add_parser = archive_sub.add_parser("add", help="Archive a message")
    add_parser.add_argument(
        "--offline",
        action="store_true",
        help="Archive the cached header only; do not download the full source",
    )
    remove_parser = archive_sub.add_parser("remove", help="Unarchive a message (the cached copy stays)")
    forget_parser = archive_sub.add_parser("forget", help="Drop a cached copy that is not archived")
    delete_parser = archive_sub.add_parser("delete", help="Delete a local copy, archived or not")
    for p in (add_parser, remove_parser, forget_parser, delete_parser):
        p.add_argument("message_id", help="Message identifier")
        p.add_argument("--mailbox", default=None, help="Mailbox / Gmail label (default: settings)")

    archive_sub.add_parser("stats", help="Show archive stats")

    # Search
    search_parser = subparsers.add_parser(
        "search", help="Search the archive and the cached server list (offline)"
    )
    search_parser.add_argument("query", nargs="?", default="", help="Text to match in subject or sender")
    search_parser.add_argument("--mailbox", default=None, help="Mailbox / Gmail label (default: settings)")
    search_parser.add_argument(
        "--location",
        choices=[loc.value for loc in SearchLocation],
        default=SearchLocation.ALL.value,
        help="Which stores to search",
    )
    search_parser.add_argument(
        "--folder",
        default="current",
        help="'current', 'all', or a mailbox name",
    )
    search_parser.add_argument("--sender", default="", help="Sender address or name filter")

    return parser


def _open_repository(args: argparse.Namespace, settings: Settings) -> LocalArchiveRepository:
    repo = LocalArchiveRepository(args.db or settings.archive_db_path)
    repo.initialize()
    return repo


def _make_state(
    args: argparse.Namespace, settings: Settings, repo: LocalArchiveRepository
) -> MailboxState:
    mode = getattr(args, "mode", None) or settings.default_view_mode
    return MailboxState(
        repo,
        args.account or settings.account_id,
        getattr(args, "mailbox", None) or settings.default_mailbox,
        view_mode=ViewMode(mode),
    )


async def _online_controller(
    settings: Settings, state: MailboxState, max_results: int | None = None
) -> MailboxController:
    gmail = GmailClient(settings)
    await gmail.authenticate()
    provider = GmailMailboxProvider(gmail, max_results=max_results)
    return MailboxController(state, provider)


def _print_records(records: list[DisplayRecord]) -> None:
    for r in records:
        archived = "ARCHIVED" if r.is_archived else "-"
        date_part = r.date.isoformat() if r.date else "(no date)"
        from_part = r.sender.address or r.sender.name or "(unknown sender)"
        print(f"{r.source.value}\t{archived}\t{date_part}\t{from_part}\t{r.subject}\t{r.id}")


def _cmd_mailbox_list(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)
    controller = MailboxController(_make_state(args, settings, repo))

    records = controller.open()
    _print_records(records)
    logger.info(
        "mailbox_rendered",
        mailbox=controller.state.mailbox,
        mode=controller.state.view_mode.value,
        server_status=controller.state.server_status.value,
        count=len(records),
    )
    return 0


async def _cmd_mailbox_sync(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)
    state = _make_state(args, settings, repo)

    controller = await _online_controller(settings, state, args.limit)
    controller.open()
    refreshed = await controller.refresh()
    if not refreshed:
        print("Refresh failed; showing cached and archived messages.", file=sys.stderr)

    _print_records(controller.display())
    return 0 if refreshed else 1


async def _cmd_archive_add(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)
    state = _make_state(args, settings, repo)

    if args.offline:
        controller = MailboxController(state)
        controller.open()
    else:
        controller = await _online_controller(settings, state)
        controller.open()
        if state.find_header(args.message_id) is None:
            await controller.refresh()

    try:
        await controller.archive(args.message_id)
    except KeyError:
        print(f"Message {args.message_id} not found in {state.mailbox}", file=sys.stderr)
        return 1

    print(f"Archived {args.message_id}")
    return 0


def _cmd_archive_change(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)
    state = _make_state(args, settings, repo)
    state.load_local()

    if args.archive_command == "remove":
        changed = state.unarchive(args.message_id)
        verb = "Unarchived"
    elif args.archive_command == "forget":
        changed = state.remove_cached_only(args.message_id)
        verb = "Forgot cached copy of"
    else:
        changed = state.remove_local(args.message_id)
        verb = "Deleted local copy of"

    if not changed:
        print(f"Nothing to change for {args.message_id}", file=sys.stderr)
        return 1

    print(f"{verb} {args.message_id}")
    return 0


def _cmd_archive_stats(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)

    stats = repo.stats(args.account or settings.account_id)
    print(f"Stored messages: {stats.total_messages}")
    print(f"Archived: {stats.archived_messages}")
    print(f"Cached only: {stats.cached_only_messages}")
    if stats.min_date and stats.max_date:
        print(f"Date range: {stats.min_date.date().isoformat()} -> {stats.max_date.date().isoformat()}")

    return 0


async def _cmd_search(args: argparse.Namespace) -> int:
    settings = get_settings()
    repo = _open_repository(args, settings)
    state = _make_state(args, settings, repo)

    search_provider = MailSearchProvider(repo, state.account_id)
    controller = MailboxController(state, search_provider=search_provider)
    controller.open()

    filters = SearchFilters(
        location=SearchLocation(args.location),
        folder=args.folder,
        sender=args.sender,
    )
    if not filters.is_active(args.query):
        print("Nothing to search for: give a query or --sender.", file=sys.stderr)
        return 2

    _print_records(await controller.search(args.query, filters))
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Mail Reconciler CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging; records go to stderr so stdout stays parseable.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    logger.debug("mail_reconciler_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    if parsed.command == "mailbox":
        if parsed.mailbox_command == "list":
            return _cmd_mailbox_list(parsed)
        if parsed.mailbox_command == "sync":
            return asyncio.run(_cmd_mailbox_sync(parsed))

    if parsed.command == "archive":
        if parsed.archive_command == "add":
            return asyncio.run(_cmd_archive_add(parsed))
        if parsed.archive_command in ("remove", "forget", "delete"):
            return _cmd_archive_change(parsed)
        if parsed.archive_command == "stats":
            return _cmd_archive_stats(parsed)

    if parsed.command == "search":
        return asyncio.run(_cmd_search(parsed))

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
