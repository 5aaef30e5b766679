from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from club_attendance.config import Settings, load_settings, refresh_settings_from_store, user_settings_store
from club_attendance.data import Database
from club_attendance.remote import FirebaseTransport, InMemoryTransport, RemoteTransport
from club_attendance.services import ClubService, ClubStore, MonthlyStatistics, PermissionDeniedError
from club_attendance.services.store import backup_filename
from club_attendance.utils import utc_now

logger = logging.getLogger("club_attendance")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def build_transport(settings: Settings) -> RemoteTransport:
    if settings.remote_enabled:
        return FirebaseTransport(
            settings.database_url,
            auth_token=settings.auth_token,
            timeout=settings.remote_timeout,
        )
    logger.info("No remote database configured; changes stay in the local cache.")
    return InMemoryTransport()


def open_store(settings: Settings, *, sync_timeout: float = 0.0) -> ClubStore:
    """Open the store and optionally wait for the first remote snapshot."""

    synced = threading.Event()
    store = ClubStore(Database(settings.cache_path), build_transport(settings))
    store.open(on_change=lambda _snapshot: synced.set())
    if settings.remote_enabled and sync_timeout > 0 and not synced.wait(sync_timeout):
        logger.warning("No remote snapshot within %.1fs; using the local cache.", sync_timeout)
    return store


def _cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    output = Path(args.output) if args.output else Path.cwd() / backup_filename(utc_now())
    store = open_store(settings, sync_timeout=args.sync_timeout)
    try:
        output.write_text(store.export_json(), encoding="utf-8")
    finally:
        store.close()
    print(f"Exported backup to {output}")
    return 0


def _cmd_import(args: argparse.Namespace, settings: Settings) -> int:
    payload = Path(args.file).read_bytes()
    store = open_store(settings, sync_timeout=args.sync_timeout)
    try:
        service = ClubService(store, is_admin=args.admin)
        ok = service.import_backup(payload)
    except PermissionDeniedError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    finally:
        store.close()

    if not ok:
        print("The backup file could not be read.", file=sys.stderr)
        return 1
    print("Backup restored.")
    return 0


def _cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    store = open_store(settings, sync_timeout=args.sync_timeout)
    try:
        snapshot = store.snapshot()
    finally:
        store.close()

    query = MonthlyStatistics(args.year, args.month - 1)
    query.set_search(args.search or "")
    if args.sort:
        query.toggle_sort()

    rows = query.rows(snapshot)
    print(f"{args.year}-{args.month:02d} ({len(rows)} members, sort={query.sort_mode.value})")
    for row in rows:
        print(f"{row.member.name:<20} total={row.total:<4} offline={row.total_offline:<4} online={row.total_online}")
    return 0


def _cmd_configure(args: argparse.Namespace, settings: Settings) -> int:
    changes = {}
    if args.database_url is not None:
        changes["database_url"] = args.database_url or None
    if args.auth_token is not None:
        changes["auth_token"] = args.auth_token or None
    if args.log_level is not None:
        changes["log_level"] = args.log_level.upper()

    if changes:
        user_settings_store.update(**changes)
    print(refresh_settings_from_store())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="club-attendance", description="Club attendance sync and statistics.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write a JSON backup of every collection.")
    export_parser.add_argument("--output", help="Backup file path (default: dated file in the current directory)")
    export_parser.add_argument("--sync-timeout", type=float, default=5.0)
    export_parser.set_defaults(handler=_cmd_export)

    import_parser = subparsers.add_parser("import", help="Restore a JSON backup.")
    import_parser.add_argument("file")
    import_parser.add_argument("--admin", action="store_true", help="Act with admin rights")
    import_parser.add_argument("--sync-timeout", type=float, default=5.0)
    import_parser.set_defaults(handler=_cmd_import)

    stats_parser = subparsers.add_parser("stats", help="Print monthly attendance totals.")
    stats_parser.add_argument("--year", type=int, required=True)
    stats_parser.add_argument("--month", type=int, required=True, choices=range(1, 13), metavar="1-12")
    stats_parser.add_argument("--search", help="Name or initial-consonant search term")
    stats_parser.add_argument("--sort", action="store_true", help="Sort by total, highest first")
    stats_parser.add_argument("--sync-timeout", type=float, default=5.0)
    stats_parser.set_defaults(handler=_cmd_stats)

    configure_parser = subparsers.add_parser("configure", help="Save remote database settings.")
    configure_parser.add_argument("--database-url")
    configure_parser.add_argument("--auth-token")
    configure_parser.add_argument("--log-level")
    configure_parser.set_defaults(handler=_cmd_configure)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)
    return args.handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())
