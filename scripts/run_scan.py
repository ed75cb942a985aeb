"""Run the folder sync by hand, without Temporal.

Usage:
    python scripts/run_scan.py scan
    python scripts/run_scan.py scan --source local:/srv/sales-orders
    python scripts/run_scan.py list --status pending
    python scripts/run_scan.py import 12 --user 3
    python scripts/run_scan.py ignore 13
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.observability.logging import configure_logging, get_logger
from folder_sync.errors import FolderSyncError
from folder_sync.models import PendingStatus
from folder_sync.service import FolderSyncService
from folder_sync.settings import SyncSettings


logger = get_logger("scripts.run_scan")


async def run(args: argparse.Namespace, settings: SyncSettings) -> dict:
    service = FolderSyncService.from_settings(settings)
    try:
        if args.command == "scan":
            return (await service.scan()).model_dump()
        if args.command == "list":
            items = service.list_items(PendingStatus(args.status), limit=args.limit)
            return {
                "total": service.count_items(PendingStatus(args.status)),
                "data": [item.model_dump(mode="json") for item in items],
            }
        if args.command == "import":
            return (await service.import_item(args.item_id, actor_id=args.user)).model_dump()
        if args.command == "ignore":
            return service.ignore_item(args.item_id).model_dump(mode="json")
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await service.close()


def main():
    """Entry point."""
    settings = SyncSettings.from_env()

    parser = argparse.ArgumentParser(description="Folder sync command line")
    parser.add_argument("--source", help="Source URI (overrides SYNC_SOURCE_URI)")
    parser.add_argument("--db", help="SQLite database (overrides SYNC_DB_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scan", help="Reconcile the remote folders into pending items")

    list_parser = sub.add_parser("list", help="List pending items")
    list_parser.add_argument("--status", choices=[s.value for s in PendingStatus], default="pending")
    list_parser.add_argument("--limit", type=int, default=50)

    import_parser = sub.add_parser("import", help="Import a pending item as an Operation")
    import_parser.add_argument("item_id", type=int)
    import_parser.add_argument("--user", type=int, help="Acting user id")

    ignore_parser = sub.add_parser("ignore", help="Ignore a pending item")
    ignore_parser.add_argument("item_id", type=int)

    args = parser.parse_args()

    if args.source:
        settings.source_uri = args.source
    if args.db:
        settings.db_path = Path(args.db)
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    try:
        result = asyncio.run(run(args, settings))
    except FolderSyncError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
