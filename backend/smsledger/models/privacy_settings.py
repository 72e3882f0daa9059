"""Privacy settings model - persisted in database as a singleton row."""

from sqlalchemy import Column, Integer, Boolean, DateTime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import func

from smsledger.config import settings as app_settings
from smsledger.database import Base


class PrivacySettings(Base):
    """
    Privacy settings stored in database.
    Singleton pattern - only one row with id=1.

    Read once at the start of every sync run, so edits only affect records
    ingested afterwards.
    """
    __tablename__ = "privacy_settings"

    id = Column(Integer, primary_key=True, default=1)

    # Keep the original SMS text instead of its SHA256 hash
    store_plain_raw_message = Column(Boolean, default=False, nullable=False)

    # Push newly ingested records to the remote mirror
    persist_remote_transactions = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


def get_or_create_privacy_settings(db) -> PrivacySettings:
    """Get the singleton privacy settings, creating from startup config if needed."""
    settings = db.query(PrivacySettings).filter(PrivacySettings.id == 1).first()
    if not settings:
        settings = PrivacySettings(
            id=1,
            store_plain_raw_message=app_settings.store_plain_raw_message,
            persist_remote_transactions=app_settings.persist_remote_transactions,
        )
        db.add(settings)
        try:
            db.commit()
        except IntegrityError:
            # Created concurrently by another session
            db.rollback()
            return db.query(PrivacySettings).filter(PrivacySettings.id == 1).one()
        db.refresh(settings)
    return settings
