"""
Deduplication service for SMS transactions.
"""

import hashlib
import re
from datetime import datetime

from sqlalchemy.orm import Session

from smsledger.models.transaction import SmsTransaction
from smsledger.parsers.base import TransactionCandidate
from smsledger.parsers.fields import MAX_MERCHANT_LENGTH, as_utc


def _minute(moment: datetime) -> str:
    return as_utc(moment).replace(second=0, microsecond=0).strftime("%Y-%m-%dT%H:%M")


def _merchant_key(merchant: str) -> str:
    return re.sub(r"\s+", " ", (merchant or "").strip().lower())[:MAX_MERCHANT_LENGTH]


def build_identity_key(owner_user_id: str, candidate: TransactionCandidate) -> str:
    """
    Generate SHA256 identity key for deduplication.

    A bank reference number identifies the transaction on its own:
    ref|owner|REFERENCE. Without one, collapse copies of the same event
    within the same minute:
    fb|owner|minute|amount|direction|mode|merchant
    """
    if candidate.reference_number and candidate.reference_number.strip():
        components = [
            "ref",
            str(owner_user_id),
            candidate.reference_number.strip().upper(),
        ]
    else:
        components = [
            "fb",
            str(owner_user_id),
            _minute(candidate.timestamp),
            f"{candidate.amount:.2f}",
            candidate.direction.value,
            candidate.mode.value,
            _merchant_key(candidate.merchant_name),
        ]
    combined = "|".join(components)
    return hashlib.sha256(combined.encode()).hexdigest()


def is_duplicate(db: Session, owner_user_id: str, identity_key: str) -> bool:
    """Check if this user already has a transaction with this identity key"""
    return db.query(SmsTransaction.id).filter(
        SmsTransaction.owner_user_id == owner_user_id,
        SmsTransaction.identity_key == identity_key
    ).first() is not None
