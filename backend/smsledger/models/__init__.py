"""
Database models package.
"""

from smsledger.models.transaction import SmsTransaction, TransactionDirection, TransactionMode
from smsledger.models.sync_run import SyncRun, SyncStatus
from smsledger.models.privacy_settings import PrivacySettings, get_or_create_privacy_settings

__all__ = [
    "SmsTransaction",
    "TransactionDirection",
    "TransactionMode",
    "SyncRun",
    "SyncStatus",
    "PrivacySettings",
    "get_or_create_privacy_settings",
]
