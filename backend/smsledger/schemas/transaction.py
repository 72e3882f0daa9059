"""
SMS transaction schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from smsledger.models.transaction import TransactionDirection, TransactionMode


class SmsTransactionResponse(BaseModel):
    id: str
    owner_user_id: str
    timestamp: datetime
    amount: Decimal
    direction: TransactionDirection
    mode: TransactionMode
    merchant_name: str
    bank_name: Optional[str] = None
    category: Optional[str] = None
    upi_id: Optional[str] = None
    reference_number: Optional[str] = None
    account_last4: Optional[str] = None
    sender: Optional[str] = None
    raw_message_or_hash: str
    raw_is_hashed: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SmsTransactionListResponse(BaseModel):
    items: list[SmsTransactionResponse]
    total: int
    offset: int
    limit: int


class DateGroup(BaseModel):
    """Transactions sharing one local calendar date."""
    date: str = Field(..., description="ISO date label, YYYY-MM-DD")
    items: list[SmsTransactionResponse]


class MirrorRecord(BaseModel):
    """
    Document written to the remote mirror, keyed by identity_key.
    Carries the hashed or plain raw message exactly as stored locally.
    """
    identity_key: str
    owner_user_id: str
    timestamp: datetime
    amount: Decimal
    direction: TransactionDirection
    mode: TransactionMode
    merchant_name: str
    bank_name: Optional[str] = None
    category: Optional[str] = None
    upi_id: Optional[str] = None
    reference_number: Optional[str] = None
    account_last4: Optional[str] = None
    raw_message_or_hash: str
    raw_is_hashed: bool

    class Config:
        from_attributes = True


class GroupedTransactionsResponse(BaseModel):
    groups: list[DateGroup]
    total: int
    offset: int
    limit: int
