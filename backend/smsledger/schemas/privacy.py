"""Schemas for privacy settings."""

from pydantic import BaseModel
from typing import Optional


class PrivacySettingsResponse(BaseModel):
    """Privacy settings response."""
    store_plain_raw_message: bool
    persist_remote_transactions: bool

    class Config:
        from_attributes = True


class PrivacySettingsUpdate(BaseModel):
    """Update privacy settings. Applies to records ingested afterwards."""
    store_plain_raw_message: Optional[bool] = None
    persist_remote_transactions: Optional[bool] = None
