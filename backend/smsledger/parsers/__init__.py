"""
SMS pattern extraction package.
"""

import re
from datetime import datetime
from typing import Optional

from smsledger.config import settings
from smsledger.parsers.base import BaseMatcher, ShapeMatcher, TransactionCandidate
from smsledger.parsers.matchers import MATCHERS

# Notices that mention money without a completed transaction
NON_TRANSACTION_PATTERNS = (
    re.compile(r"\botp\b|one[\s-]time\s+password|verification\s+code", re.IGNORECASE),
    re.compile(r"\bwill\s+be\s+(?:debited|deducted|charged|credited)\b", re.IGNORECASE),
    re.compile(r"\bis\s+due\b|\bdue\s+(?:on|by|date)\b|\bminimum\s+amount\s+due\b", re.IGNORECASE),
    re.compile(r"\bhas\s+requested\b|\bcollect\s+request\b|\brequested\s+money\b", re.IGNORECASE),
    # A failed payment is not a transaction; its refund is
    re.compile(
        r"^(?!.*\b(?:refund(?:ed)?|reversed|credited\s+back)\b).*\b(?:failed|declined|unsuccessful)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bpre-?approved\b|\bapply\s+now\b", re.IGNORECASE),
)


def is_non_transaction(text: str) -> bool:
    return any(pattern.search(text) for pattern in NON_TRANSACTION_PATTERNS)


def extract(
    raw_message: str,
    received_at: datetime,
    sender: Optional[str] = None,
    utc_offset_minutes: Optional[int] = None
) -> Optional[TransactionCandidate]:
    """
    Extract one transaction candidate from a raw SMS body.

    Returns None for anything that is not a recognised, complete transaction
    message. Never raises for unexpected input and keeps no state.
    """
    if not isinstance(raw_message, str) or not isinstance(received_at, datetime):
        return None
    text = " ".join(raw_message.split())
    if not text or is_non_transaction(text):
        return None
    if sender is not None and not isinstance(sender, str):
        sender = None
    if utc_offset_minutes is None:
        utc_offset_minutes = settings.message_utc_offset_minutes

    for matcher in MATCHERS:
        if matcher.can_parse(text):
            return matcher.parse(text, received_at, sender, utc_offset_minutes)
    return None


__all__ = ['BaseMatcher', 'ShapeMatcher', 'TransactionCandidate', 'MATCHERS', 'extract', 'is_non_transaction']
