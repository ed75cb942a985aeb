"""Worker for the folder sync.

Listens on the folder sync task queue and executes the scheduled folder scan
workflow and its activity.

Run with --queue <name> to poll a queue other than SYNC_TASK_QUEUE.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from activities.scan import scan_sharepoint_folders
from core.observability.logging import configure_logging, get_logger
from folder_sync.service import init_database
from folder_sync.settings import SyncSettings
from workflows.folder_scan_workflow import FolderScanWorkflow


logger = get_logger("workers.worker")

WORKFLOWS = [FolderScanWorkflow]
ACTIVITIES = [scan_sharepoint_folders]


async def run_worker(queue: str) -> None:
    """Start a worker polling one task queue.

    Args:
        queue: Task queue to poll

    Raises:
        Exception: If connection to Temporal fails
    """
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    worker = Worker(
        client,
        task_queue=queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )
    logger.info(
        f"Worker created for queue '{queue}'",
        extra_fields={"workflows": len(WORKFLOWS), "activities": len(ACTIVITIES)},
    )

    try:
        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    settings = SyncSettings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    parser = argparse.ArgumentParser(description="Folder Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=settings.task_queue,
        help=f"Task queue to poll (default: {settings.task_queue})"
    )
    args = parser.parse_args()

    init_database(settings)
    try:
        asyncio.run(run_worker(queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
