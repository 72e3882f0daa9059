"""
Sync schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from smsledger.models.sync_run import SyncStatus


class SyncRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    from_date: Optional[datetime] = None


class SyncOutcome(BaseModel):
    """Result of one sync request."""
    user_id: str
    status: SyncStatus
    inserted_count: int = 0
    skipped_existing: int = 0
    unparseable: int = 0
    scanned: int = 0
    remote_queued: int = 0
    retryable: bool = False
    debounced: bool = False
    coalesced: bool = False
    error: Optional[str] = None
    run_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class SyncProgress(BaseModel):
    user_id: str
    running: bool
    scanned: int = 0
    total: int = 0
    inserted: int = 0


class RemoteReport(BaseModel):
    """Remote mirror pushes for one user since startup."""
    queued: int = 0
    pending: int = 0
    pushed: int = 0
    failed: int = 0


class SyncStatusResponse(BaseModel):
    progress: SyncProgress
    remote: RemoteReport
    last_outcome: Optional[SyncOutcome] = None


class SyncRunResponse(BaseModel):
    id: str
    user_id: str
    status: SyncStatus
    from_date: datetime
    scanned: int
    inserted: int
    skipped_existing: int
    unparseable: int
    remote_queued: int
    error_message: Optional[str]
    started_at: datetime
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True


class PermissionResponse(BaseModel):
    granted: bool
