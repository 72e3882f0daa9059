"""
Pydantic schemas package.
"""

from smsledger.schemas.transaction import (
    SmsTransactionResponse,
    SmsTransactionListResponse,
    DateGroup,
    GroupedTransactionsResponse,
    MirrorRecord,
)
from smsledger.schemas.sync import (
    SyncRequest,
    SyncOutcome,
    SyncProgress,
    RemoteReport,
    SyncStatusResponse,
    SyncRunResponse,
    PermissionResponse,
)
from smsledger.schemas.summary import (
    PeriodSummary,
    MonthTrend,
)
from smsledger.schemas.privacy import (
    PrivacySettingsResponse,
    PrivacySettingsUpdate,
)

__all__ = [
    "SmsTransactionResponse",
    "SmsTransactionListResponse",
    "DateGroup",
    "GroupedTransactionsResponse",
    "MirrorRecord",
    "SyncRequest",
    "SyncOutcome",
    "SyncProgress",
    "RemoteReport",
    "SyncStatusResponse",
    "SyncRunResponse",
    "PermissionResponse",
    "PeriodSummary",
    "MonthTrend",
    "PrivacySettingsResponse",
    "PrivacySettingsUpdate",
]
