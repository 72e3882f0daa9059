"""
Base classes for SMS shape matchers.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from smsledger.models.transaction import TransactionDirection, TransactionMode
from smsledger.parsers import fields

# Anchors shared by every shape: a currency-marked amount and a direction verb
AMOUNT_ANCHOR = re.compile(r"(?:(?<![a-z])(?:rs\.?|inr|₹)\s*\d|\d\s*(?:rs|inr|₹)(?![a-z]))", re.IGNORECASE)
DIRECTION_ANCHOR = re.compile(
    r"\b(?:debited|debit|spent|paid|sent|withdrawn|purchased?|transferred|deducted|used\s+for"
    r"|credited|credit|received|deposited|refund(?:ed)?|reversed)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TransactionCandidate:
    """A transaction extracted from one message, not yet deduplicated."""
    amount: Decimal
    direction: TransactionDirection
    mode: TransactionMode
    timestamp: datetime
    merchant_name: str
    bank_name: Optional[str] = None
    category: Optional[str] = None
    upi_id: Optional[str] = None
    reference_number: Optional[str] = None
    account_last4: Optional[str] = None
    matcher: str = ""


class BaseMatcher(ABC):
    """Base class for message shape matchers"""

    name: str = ""
    specificity: int = 0

    @abstractmethod
    def can_parse(self, text: str) -> bool:
        """Check if all anchors of this shape are present"""
        pass

    @abstractmethod
    def parse(
        self,
        text: str,
        received_at: datetime,
        sender: Optional[str],
        utc_offset_minutes: int
    ) -> Optional[TransactionCandidate]:
        """
        Extract a candidate, or None when amount or direction is missing.
        """
        pass


class ShapeMatcher(BaseMatcher):
    """
    Matcher driven by anchor patterns.

    Subclasses declare extra `anchors` and `exclusions` (markers that rule
    the shape out). They may pin the `direction` the shape describes, force
    a `mode` or set a fixed `merchant` label.
    """

    anchors: Tuple[re.Pattern, ...] = ()
    exclusions: Tuple[re.Pattern, ...] = ()
    direction: Optional[TransactionDirection] = None
    mode: Optional[TransactionMode] = None
    merchant: Optional[str] = None

    def can_parse(self, text: str) -> bool:
        if not AMOUNT_ANCHOR.search(text) or not DIRECTION_ANCHOR.search(text):
            return False
        if not all(anchor.search(text) for anchor in self.anchors):
            return False
        if any(exclusion.search(text) for exclusion in self.exclusions):
            return False
        return self.direction is None or fields.find_direction(text) == self.direction

    def parse(
        self,
        text: str,
        received_at: datetime,
        sender: Optional[str],
        utc_offset_minutes: int
    ) -> Optional[TransactionCandidate]:
        amount = fields.parse_amount(text)
        if amount is None or amount <= 0:
            return None
        direction = fields.find_direction(text)
        if direction is None:
            return None

        upi_id = fields.find_upi_id(text)
        merchant = (
            self.merchant
            or fields.find_merchant(text, direction)
            or (upi_id or "")[:fields.MAX_MERCHANT_LENGTH]
            or fields.UNKNOWN_MERCHANT
        )

        return TransactionCandidate(
            amount=amount,
            direction=direction,
            mode=self.mode or fields.find_mode(text),
            timestamp=fields.resolve_timestamp(text, received_at, utc_offset_minutes),
            merchant_name=merchant,
            bank_name=fields.find_bank(text, sender),
            category=fields.categorize(merchant, text),
            upi_id=upi_id,
            reference_number=fields.find_reference(text),
            account_last4=fields.find_account_last4(text),
            matcher=self.name,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} specificity={self.specificity}>"
