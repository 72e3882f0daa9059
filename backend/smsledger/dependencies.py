"""
FastAPI dependencies.
"""

from typing import Generator
from fastapi import Request
from sqlalchemy.orm import Session
from smsledger.database import SessionLocal
from smsledger.services.ledger_store import LedgerStore
from smsledger.services.sync_service import SyncCoordinator


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ledger_store(request: Request) -> LedgerStore:
    """Process-wide ledger store created at startup."""
    return request.app.state.ledger_store


def get_sync_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.sync_coordinator
