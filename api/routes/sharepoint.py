"""SharePoint sync endpoints.

Operator surface of the folder sync: trigger a scan, review pending folders,
import or ignore them.

Error mapping:
- 404: pending item does not exist
- 409: item already imported/ignored, or a scan is already running
- 502: downloading files or creating records failed (item stays pending)
- 503: the folder source could not be listed
"""

import math
from typing import Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from core.observability.logging import get_logger
from folder_sync.errors import (
    ConflictError,
    DownstreamFailureError,
    FolderSyncError,
    PendingItemNotFoundError,
    ScanInProgressError,
    SourceUnavailableError,
)
from folder_sync.models import PendingItem, PendingStatus, ScanResult
from folder_sync.service import FolderSyncService
from folder_sync.settings import SyncSettings


router = APIRouter()
logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


# =============================================================================
# Response Models
# =============================================================================

class PendingListResponse(BaseModel):
    """One page of pending items."""
    model_config = ConfigDict(populate_by_name=True)

    data: List[PendingItem]
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., alias="totalPages")


class PendingCountResponse(BaseModel):
    count: int


class ImportResponse(BaseModel):
    """Result of importing one pending item."""
    model_config = ConfigDict(populate_by_name=True)

    operation_id: int = Field(..., alias="operationId")
    operation_number: str = Field(..., alias="operationNumber")
    orders_linked: int = Field(..., alias="ordersLinked")
    invoices_linked: int = Field(..., alias="invoicesLinked")
    skipped_files: List[str] = Field(default_factory=list, alias="skippedFiles")


# =============================================================================
# Dependencies
# =============================================================================

_service: Optional[FolderSyncService] = None


def get_sync_service() -> FolderSyncService:
    """Shared FolderSyncService built from the environment on first use."""
    global _service
    if _service is None:
        _service = FolderSyncService.from_settings(SyncSettings.from_env())
    return _service


async def close_sync_service() -> None:
    global _service
    if _service is not None:
        await _service.close()
        _service = None


def _raise_http_error(e: FolderSyncError) -> NoReturn:
    """Translate a sync error into the HTTP response the UI expects."""
    logger.info(f"Request rejected with {type(e).__name__}: {e}")
    if isinstance(e, PendingItemNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ScanInProgressError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConflictError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, SourceUnavailableError):
        raise HTTPException(status_code=503, detail=f"Folder source unavailable: {e}")
    if isinstance(e, DownstreamFailureError):
        raise HTTPException(status_code=502, detail=str(e))
    raise HTTPException(status_code=500, detail=str(e))


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/scan", response_model=ScanResult)
async def scan(service: FolderSyncService = Depends(get_sync_service)) -> ScanResult:
    """Reconcile the remote folder tree into pending items.

    Returns how many packet folders were found and how many were new.
    """
    try:
        return await service.scan()
    except FolderSyncError as e:
        _raise_http_error(e)


@router.get("/pending", response_model=PendingListResponse)
async def list_pending(
    status: PendingStatus = Query(PendingStatus.PENDING, description="pending, imported or ignored"),
    limit: int = Query(50, ge=1, description=f"Page size, capped at {MAX_PAGE_SIZE}"),
    page: int = Query(1, ge=1),
    service: FolderSyncService = Depends(get_sync_service),
) -> PendingListResponse:
    """List pending items in one status, most recently detected first."""
    limit = min(limit, MAX_PAGE_SIZE)
    total = service.count_items(status)
    items = service.list_items(status, limit=limit, offset=(page - 1) * limit)
    return PendingListResponse(
        data=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


@router.get("/pending/count", response_model=PendingCountResponse)
async def count_pending(service: FolderSyncService = Depends(get_sync_service)) -> PendingCountResponse:
    """Number of folders awaiting review (navigation badge)."""
    return PendingCountResponse(count=service.count_items(PendingStatus.PENDING))


@router.get("/pending/{item_id}", response_model=PendingItem)
async def get_pending(
    item_id: int,
    service: FolderSyncService = Depends(get_sync_service),
) -> PendingItem:
    try:
        return service.get_item(item_id)
    except FolderSyncError as e:
        _raise_http_error(e)


@router.post("/pending/{item_id}/import", response_model=ImportResponse)
async def import_pending(
    item_id: int,
    x_user_id: Optional[int] = Header(None, description="Acting user id"),
    service: FolderSyncService = Depends(get_sync_service),
) -> ImportResponse:
    """Import a pending folder as an Operation.

    Order files become operation documents, invoice files become draft
    customer invoices, everything else is skipped.
    """
    try:
        result = await service.import_item(item_id, actor_id=x_user_id)
    except FolderSyncError as e:
        _raise_http_error(e)

    return ImportResponse(
        operation_id=result.operation_id,
        operation_number=result.operation_number,
        orders_linked=result.orders_linked,
        invoices_linked=result.invoices_linked,
        skipped_files=result.skipped_files,
    )


@router.post("/pending/{item_id}/ignore")
async def ignore_pending(
    item_id: int,
    service: FolderSyncService = Depends(get_sync_service),
) -> Dict[str, str]:
    """Dismiss a pending folder permanently."""
    try:
        service.ignore_item(item_id)
    except FolderSyncError as e:
        _raise_http_error(e)
    return {}
