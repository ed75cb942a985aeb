"""Folder Scan Workflow.

Runs one scan of the remote sales-order folders. Started on an interval by
the Temporal schedule created in scripts/start_scan_schedule.py; the schedule
skips a run while the previous one is still going.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.scan import scan_sharepoint_folders, ScanFoldersInput


@dataclass
class FolderScanInput:
    """Input for Folder Scan Workflow.

    Attributes:
        source_uri: Optional source override; the worker's SYNC_SOURCE_URI otherwise
    """
    source_uri: Optional[str] = None


@workflow.defn
class FolderScanWorkflow:
    """Workflow for one reconciliation pass of the remote folder source."""

    @workflow.run
    async def run(self, input: FolderScanInput) -> dict:
        """Execute the scan.

        Returns:
            dict with found / new counts
        """
        result = await workflow.execute_activity(
            scan_sharepoint_folders,
            ScanFoldersInput(source_uri=input.source_uri),
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(
                initial_interval=timedelta(seconds=10),
                backoff_coefficient=2.0,
                maximum_interval=timedelta(minutes=2),
                maximum_attempts=3,
                non_retryable_error_types=["ScanInProgressError", "ConflictError"],
            ),
        )

        workflow.logger.info(f"Folder scan complete: found={result.found} new={result.new}")
        return {"found": result.found, "new": result.new}
