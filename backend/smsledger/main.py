"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from smsledger.config import settings
from smsledger.api.router import api_router
from smsledger.database import SessionLocal, engine, init_db
from smsledger.services.inbox import JsonlInboxSource
from smsledger.services.ledger_store import LedgerStore
from smsledger.services.remote_mirror import HttpRemoteMirror
from smsledger.services.sync_service import SyncCoordinator

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db(engine)

    store = LedgerStore(SessionLocal, engine)
    inbox = JsonlInboxSource(settings.inbox_export_path, settings.inbox_access_granted)
    mirror = None
    if settings.remote_mirror_url:
        mirror = HttpRemoteMirror(
            settings.remote_mirror_url,
            token=settings.remote_mirror_token,
            timeout=settings.remote_timeout_seconds,
        )
    coordinator = SyncCoordinator(store, inbox, mirror)
    if settings.periodic_sync_user_id:
        coordinator.start_periodic(settings.periodic_sync_user_id, settings.periodic_sync_interval_seconds)

    app.state.ledger_store = store
    app.state.sync_coordinator = coordinator
    logger.info(f"{settings.app_name} started")
    try:
        yield
    finally:
        coordinator.close()
        if mirror is not None:
            mirror.close()
        store.close()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Local-first ledger of bank and payment SMS transactions",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/api/v1/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "app_name": settings.app_name
    }
