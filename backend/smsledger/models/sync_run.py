"""
Sync run database model.
"""

import enum
import uuid
from sqlalchemy import Column, String, Integer, Enum, Text, Index
from smsledger.database import Base
from smsledger.models.types import UTCDateTime


class SyncStatus(str, enum.Enum):
    """Outcome of a sync request."""
    completed = "completed"
    permission_denied = "permission_denied"
    storage_unavailable = "storage_unavailable"
    in_progress = "in_progress"
    failed = "failed"


class SyncRun(Base):
    """Bookkeeping for one executed inbox scan."""

    __tablename__ = "sync_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), nullable=False)
    status = Column(Enum(SyncStatus), nullable=False)
    from_date = Column(UTCDateTime, nullable=False)
    scanned = Column(Integer, default=0, nullable=False)
    inserted = Column(Integer, default=0, nullable=False)
    skipped_existing = Column(Integer, default=0, nullable=False)
    unparseable = Column(Integer, default=0, nullable=False)
    remote_queued = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    started_at = Column(UTCDateTime, nullable=False)
    finished_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_sync_run_user_started", "user_id", "started_at"),
    )
