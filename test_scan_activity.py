"""
Scan activity tests.

Runs the Temporal activity in an ActivityEnvironment against a local
folder source; no Temporal server is needed.
"""

import asyncio

import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from activities.scan import ScanFoldersInput, ScanFoldersOutput, scan_sharepoint_folders
from folder_sync.errors import SourceUnavailableError


@pytest.fixture
def activity_input(sync_settings, monkeypatch):
    monkeypatch.setenv("SYNC_UPLOADS_PATH", str(sync_settings.uploads_path))
    return ScanFoldersInput(
        source_uri=sync_settings.source_uri,
        db_path=str(sync_settings.db_path),
    )


def _run(input):
    async def main():
        return await ActivityEnvironment().run(scan_sharepoint_folders, input)

    return asyncio.run(main())


def test_scan_activity_reports_counts(activity_input, store):
    result = _run(activity_input)

    assert result == ScanFoldersOutput(found=2, new=2)
    assert store.count_by_status() == 2


def test_second_run_finds_nothing_new(activity_input, store):
    _run(activity_input)

    assert _run(activity_input) == ScanFoldersOutput(found=2, new=0)


def test_held_lease_is_not_retryable(activity_input, store):
    store.acquire_scan_lease("scan-other", ttl_seconds=600)

    with pytest.raises(ApplicationError) as exc_info:
        _run(activity_input)

    assert exc_info.value.non_retryable is True
    assert exc_info.value.type == "ScanInProgressError"


def test_unavailable_source_propagates(activity_input, tmp_path):
    activity_input.source_uri = f"local:{tmp_path / 'missing'}"

    with pytest.raises(SourceUnavailableError):
        _run(activity_input)

