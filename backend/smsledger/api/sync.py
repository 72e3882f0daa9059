"""
Sync API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from smsledger.dependencies import get_ledger_store, get_sync_coordinator
from smsledger.exceptions import StorageUnavailable
from smsledger.schemas.sync import (
    PermissionResponse,
    SyncOutcome,
    SyncRequest,
    SyncRunResponse,
    SyncStatusResponse,
)
from smsledger.services.ledger_store import LedgerStore
from smsledger.services.sync_service import SyncCoordinator

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("", response_model=SyncOutcome)
def run_sync(
    request: SyncRequest,
    coordinator: SyncCoordinator = Depends(get_sync_coordinator)
):
    """
    Scan the inbox and store new transactions for the user.
    Problems are reported in the outcome status, not as HTTP errors.
    """
    return coordinator.sync(request.user_id, request.from_date)


@router.get("/status", response_model=SyncStatusResponse)
def get_sync_status(
    user_id: str = Query(..., min_length=1),
    coordinator: SyncCoordinator = Depends(get_sync_coordinator)
):
    """Progress of the current run and remote mirror counters"""
    return SyncStatusResponse(
        progress=coordinator.progress(user_id),
        remote=coordinator.remote_report(user_id),
        last_outcome=coordinator.last_outcome(user_id),
    )


@router.get("/history", response_model=list[SyncRunResponse])
def get_sync_history(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    store: LedgerStore = Depends(get_ledger_store)
):
    """Recent sync runs, newest first"""
    try:
        return store.list_sync_runs(user_id, limit)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/permission", response_model=PermissionResponse)
def get_permission(coordinator: SyncCoordinator = Depends(get_sync_coordinator)):
    return PermissionResponse(granted=coordinator.has_permission())


@router.post("/permission", response_model=PermissionResponse)
def request_permission(coordinator: SyncCoordinator = Depends(get_sync_coordinator)):
    """Ask for inbox read access"""
    return PermissionResponse(granted=coordinator.request_permission())
