"""Create the Temporal schedule that scans the remote folders periodically.

The schedule starts FolderScanWorkflow every SYNC_SCAN_INTERVAL_MINUTES and
skips a run while the previous one is still in progress. Running the script
again updates the interval of the existing schedule.

Usage:
    python scripts/start_scan_schedule.py
    python scripts/start_scan_schedule.py --interval 5
    python scripts/start_scan_schedule.py --delete
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

from temporalio.client import (
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleAlreadyRunningError,
    ScheduleIntervalSpec,
    ScheduleOverlapPolicy,
    SchedulePolicy,
    ScheduleSpec,
    ScheduleUpdate,
    ScheduleUpdateInput,
)

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.observability.logging import configure_logging, get_logger
from folder_sync.settings import SyncSettings
from workflows.folder_scan_workflow import FolderScanInput, FolderScanWorkflow


logger = get_logger("scripts.start_scan_schedule")

SCHEDULE_ID = "folder-sync-scan"


def build_schedule(task_queue: str, interval_minutes: int) -> Schedule:
    """Schedule definition: one scan per interval, overlapping runs skipped."""
    return Schedule(
        action=ScheduleActionStartWorkflow(
            FolderScanWorkflow.run,
            FolderScanInput(),
            id=f"{SCHEDULE_ID}-run",
            task_queue=task_queue,
        ),
        spec=ScheduleSpec(
            intervals=[ScheduleIntervalSpec(every=timedelta(minutes=interval_minutes))]
        ),
        policy=SchedulePolicy(overlap=ScheduleOverlapPolicy.SKIP),
    )


async def start_schedule(task_queue: str, interval_minutes: int) -> None:
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    schedule = build_schedule(task_queue, interval_minutes)
    try:
        await client.create_schedule(SCHEDULE_ID, schedule)
        logger.info(f"Created schedule '{SCHEDULE_ID}' (every {interval_minutes} min)")
    except ScheduleAlreadyRunningError:
        handle = client.get_schedule_handle(SCHEDULE_ID)

        def updater(input: ScheduleUpdateInput) -> ScheduleUpdate:
            return ScheduleUpdate(schedule=schedule)

        await handle.update(updater)
        logger.info(f"Updated schedule '{SCHEDULE_ID}' (every {interval_minutes} min)")


async def delete_schedule() -> None:
    client = await get_temporal_client()
    await client.get_schedule_handle(SCHEDULE_ID).delete()
    logger.info(f"Deleted schedule '{SCHEDULE_ID}'")


def main():
    """Entry point."""
    settings = SyncSettings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    parser = argparse.ArgumentParser(description="Manage the periodic folder scan schedule")
    parser.add_argument("--interval", type=int, default=settings.scan_interval_minutes,
                        help="Minutes between scans")
    parser.add_argument("--queue", default=settings.task_queue, help="Task queue of the worker")
    parser.add_argument("--delete", action="store_true", help="Delete the schedule")
    args = parser.parse_args()

    try:
        if args.delete:
            asyncio.run(delete_schedule())
        else:
            asyncio.run(start_schedule(args.queue, args.interval))
        return 0
    except Exception as e:
        logger.error(f"Schedule operation failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
