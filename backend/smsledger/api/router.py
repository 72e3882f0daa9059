"""
Main API router.
"""

from fastapi import APIRouter
from smsledger.api import transactions, sync, summary, privacy

api_router = APIRouter()

api_router.include_router(transactions.router)
api_router.include_router(sync.router)
api_router.include_router(summary.router)
api_router.include_router(privacy.router)
