"""Privacy settings API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smsledger.dependencies import get_db
from smsledger.schemas.privacy import PrivacySettingsResponse, PrivacySettingsUpdate
from smsledger.models.privacy_settings import get_or_create_privacy_settings

router = APIRouter(prefix="/privacy", tags=["privacy"])


@router.get("/settings", response_model=PrivacySettingsResponse)
def get_privacy_settings(db: Session = Depends(get_db)):
    """Get current privacy settings."""
    return get_or_create_privacy_settings(db)


@router.patch("/settings", response_model=PrivacySettingsResponse)
def update_privacy_settings(
    updates: PrivacySettingsUpdate,
    db: Session = Depends(get_db)
):
    """
    Update privacy settings.
    Records already stored keep the form they were written in.
    """
    settings = get_or_create_privacy_settings(db)

    if updates.store_plain_raw_message is not None:
        settings.store_plain_raw_message = updates.store_plain_raw_message
    if updates.persist_remote_transactions is not None:
        settings.persist_remote_transactions = updates.persist_remote_transactions

    db.commit()
    db.refresh(settings)
    return settings
