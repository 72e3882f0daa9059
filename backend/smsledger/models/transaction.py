"""
SMS transaction database model.
"""

import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, Numeric, Enum, Index, UniqueConstraint
from smsledger.database import Base
from smsledger.models.types import EncryptedText, UTCDateTime


class TransactionDirection(str, enum.Enum):
    """Money leaving (debit) or entering (credit) the account."""
    debit = "debit"
    credit = "credit"


class TransactionMode(str, enum.Enum):
    """Payment channel."""
    upi = "upi"
    card = "card"
    net_banking = "net_banking"
    cash = "cash"
    other = "other"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SmsTransaction(Base):
    """Transaction extracted from a bank/payment SMS. Immutable once stored."""

    __tablename__ = "sms_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String(128), nullable=False)
    identity_key = Column(String(64), nullable=False)  # For deduplication
    timestamp = Column(UTCDateTime, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # Always positive, direction carries the sign
    direction = Column(Enum(TransactionDirection), nullable=False)
    mode = Column(Enum(TransactionMode), nullable=False)
    bank_name = Column(String(64), nullable=True)
    category = Column(String(64), nullable=True)

    # Encrypted at rest
    merchant_name = Column(EncryptedText, nullable=False)
    upi_id = Column(EncryptedText, nullable=True)
    reference_number = Column(EncryptedText, nullable=True)
    account_last4 = Column(EncryptedText, nullable=True)
    sender = Column(EncryptedText, nullable=True)
    raw_message_or_hash = Column(EncryptedText, nullable=False)

    raw_is_hashed = Column(Boolean, nullable=False)
    created_at = Column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_user_id", "identity_key", name="uq_sms_txn_owner_identity"),
        Index("idx_sms_txn_owner_timestamp", "owner_user_id", "timestamp"),
    )

    @property
    def display_name(self) -> str:
        return self.merchant_name or self.upi_id or self.bank_name or "Transaction"
