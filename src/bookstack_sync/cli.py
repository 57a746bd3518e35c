"""Command line interface: ``bookstack-sync``.

Subcommands:

- ``sync``  -- run one sync, or one every ``--interval`` minutes.
- ``books`` -- list the books visible to the API token.
- ``init``  -- write a starter ``.bookstack_sync/config.yml``.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.client import BookStackAPIError, BookStackClient
from .logger import setup_logging
from .sync.engine import SyncConfigurationError, SyncEngine, SyncInProgressError
from .sync.models import ConflictDecision
from .sync.reporter import format_conflict, format_sync_report
from .sync.resolver import PendingDecision, create_resolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SYNC_ERRORS = 1
EXIT_CONFIG_ERROR = 2

_ANSWERS = {
    "l": ConflictDecision.KEEP_LOCAL,
    "local": ConflictDecision.KEEP_LOCAL,
    "r": ConflictDecision.KEEP_REMOTE,
    "remote": ConflictDecision.KEEP_REMOTE,
    "d": ConflictDecision.DEFER,
    "defer": ConflictDecision.DEFER,
    "": ConflictDecision.DEFER,
}


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _notice(message: str) -> None:
    _stderr_print(f"Notice: {message}")


def prompt_conflict(pending: PendingDecision) -> None:
    """Ask on the terminal how to resolve *pending*."""
    _stderr_print("")
    _stderr_print(format_conflict(pending.conflict))
    _stderr_print("")
    while not pending.done:
        try:
            answer = input("Keep [l]ocal, keep [r]emote or [d]efer? [d] ")
        except EOFError:
            pending.defer()
            return
        decision = _ANSWERS.get(answer.strip().lower())
        if decision is None:
            _stderr_print("Please answer l, r or d.")
            continue
        pending.resolve(decision)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _load_unified() -> UnifiedConfig:
    load_dotenv()
    return build_config(load_hierarchical_config())


def _connection_config(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    yaml_fallbacks = {
        k: v
        for k, v in unified.bookstack.model_dump().items()
        if v is not None
    }
    return load_config(
        url=args.url,
        token_id=args.token_id,
        token_secret=args.token_secret,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=yaml_fallbacks,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config(Path(args.path) if args.path else None)
    print(f"Config file: {path}")
    return EXIT_OK


def _cmd_books(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = BookStackClient(_connection_config(args, unified))
    books = client.list_books()
    selected = set(unified.sync.books)
    if not books:
        print("No books visible to this API token.")
        return EXIT_OK
    for book in books:
        marker = "*" if book.id in selected else " "
        print(f"{marker} {book.id:>5}  {book.name}")
    return EXIT_OK


def _cmd_sync(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = BookStackClient(_connection_config(args, unified))

    updates: dict = {}
    if args.conflict_strategy:
        updates["conflict_strategy"] = args.conflict_strategy
    if args.folder:
        updates["folder"] = args.folder
    settings = unified.sync.model_copy(update=updates)

    resolver = None
    if settings.conflict_strategy == "interactive":
        if not sys.stdin.isatty():
            _stderr_print(
                "Interactive conflict resolution needs a terminal; "
                "using preserve-local."
            )
            settings = settings.model_copy(
                update={"conflict_strategy": "preserve-local"}
            )
        else:
            resolver = create_resolver(
                "interactive", on_conflict=prompt_conflict
            )

    engine = SyncEngine(
        client=client,
        settings=settings,
        sync_root=Path(settings.folder).expanduser(),
        resolver=resolver,
        notify=_notice,
    )

    exit_code = EXIT_OK
    while True:
        try:
            report = engine.run(args.mode)
        except SyncInProgressError as exc:
            logger.warning("%s", exc)
        else:
            print(format_sync_report(report))
            exit_code = EXIT_SYNC_ERRORS if report.errors else EXIT_OK

        if args.interval is None:
            return exit_code
        minutes = args.interval or settings.interval_minutes
        logger.info("Next sync in %d minute(s)", minutes)
        time.sleep(minutes * 60)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookstack-sync",
        description="Keep a local Markdown folder in sync with BookStack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create .bookstack_sync/config.yml, then edit it
  bookstack-sync init

  # Find the ids of the books to sync
  bookstack-sync books

  # One bidirectional sync
  bookstack-sync sync

  # Pull only, every 30 minutes
  bookstack-sync sync --mode pull-only --interval 30
        """,
    )
    parser.add_argument("--url", help="Override BookStack URL")
    parser.add_argument("--token-id", help="Override API token id")
    parser.add_argument(
        "--token-secret",
        help="Override API token secret"
        " (visible in process list -- prefer BOOKSTACK_TOKEN_SECRET env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"bookstack-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Synchronise the configured books")
    sync.add_argument(
        "--mode",
        choices=["pull-only", "push-only", "bidirectional"],
        help="Sync direction (default: sync.mode from config)",
    )
    sync.add_argument(
        "--conflict-strategy",
        choices=["preserve-local", "interactive"],
        help="How to handle pages changed on both sides",
    )
    sync.add_argument("--folder", help="Local sync folder (default: sync.folder)")
    sync.add_argument(
        "--interval",
        type=int,
        nargs="?",
        const=0,
        metavar="MIN",
        help="Keep running and sync every MIN minutes"
        " (default: sync.interval_minutes)",
    )

    sub.add_parser("books", help="List books visible to the API token")

    init = sub.add_parser("init", help="Write a starter config file")
    init.add_argument("--path", help="Config file to create")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "init":
        setup_logging(mode="cli", debug=args.debug)
        return _cmd_init(args)

    try:
        unified = _load_unified()
    except Exception as exc:
        setup_logging(mode="cli", debug=args.debug)
        _stderr_print(f"ERROR: Cannot load configuration: {exc}")
        return EXIT_CONFIG_ERROR

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.debug_format,
        level=unified.logging.level,
    )

    if getattr(args, "interval", None) is not None and args.interval < 0:
        _stderr_print("ERROR: --interval cannot be negative")
        return EXIT_CONFIG_ERROR

    try:
        if args.command == "books":
            return _cmd_books(args, unified)
        return _cmd_sync(args, unified)
    except (SyncConfigurationError, ValueError) as exc:
        _stderr_print(f"ERROR: Configuration error: {exc}")
        return EXIT_CONFIG_ERROR
    except BookStackAPIError as exc:
        _stderr_print(f"ERROR: {exc}")
        return EXIT_SYNC_ERRORS


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(0)


if __name__ == "__main__":
    run()
