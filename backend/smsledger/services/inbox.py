"""
SMS inbox sources.

The device inbox is external to this service; messages arrive as an export
of one JSON object per line with sender/address, body and date fields.
"""

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from smsledger.exceptions import PermissionDenied
from smsledger.parsers.base import AMOUNT_ANCHOR, DIRECTION_ANCHOR
from smsledger.parsers.fields import as_utc

logger = logging.getLogger(__name__)

# DLT sender-id fragments of banks, UPI apps and payment gateways
TRANSACTION_SENDERS = (
    "HDFCBK", "ICICIB", "SBIIN", "SBIBNK", "SBIUPI", "AXISNB", "AXISBK", "PNBSMS", "BOISMS", "CNRBBK",
    "UNIONB", "KTKBNK", "YESBNK", "INDUSB", "SCBANK", "CITI", "HSBC", "IDFCFB", "KOTAKB", "FEDBNK", "BOBARB",
    "PAYTM", "PHONEPE", "GPAY", "BHIMUPI", "AMAZONP", "MOBIKW",
    "RAZORP", "PAYUBZ", "CCAVEN", "INSTAM",
)

PAYMENT_KEYWORDS = re.compile(r"\b(?:upi|neft|imps|rtgs|utr|rrn|a/?c|txn|transaction)\b", re.IGNORECASE)


@dataclass(frozen=True)
class InboxMessage:
    sender: str
    body: str
    received_at: datetime


def is_transaction_sender(sender: Optional[str]) -> bool:
    if not sender:
        return False
    normalized = re.sub(r"[^A-Z]", "", sender.upper())
    return any(fragment in normalized for fragment in TRANSACTION_SENDERS)


def looks_like_transaction_message(body: Optional[str]) -> bool:
    """Cheap check for a currency amount next to a payment word."""
    if not body or not AMOUNT_ANCHOR.search(body):
        return False
    return bool(DIRECTION_ANCHOR.search(body) or PAYMENT_KEYWORDS.search(body))


def is_candidate_message(message: InboxMessage) -> bool:
    """Known sender, or a body that reads like a transaction."""
    return is_transaction_sender(message.sender) or looks_like_transaction_message(message.body)


def _parse_received_at(value: Any) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Android content providers report epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        try:
            return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def message_from_dict(data: Dict[str, Any]) -> Optional[InboxMessage]:
    body = data.get("body")
    received_at = _parse_received_at(data.get("date"))
    if not isinstance(body, str) or received_at is None:
        return None
    sender = data.get("sender") or data.get("address") or ""
    return InboxMessage(sender=str(sender), body=body, received_at=received_at)


class InboxSource(ABC):
    """Read access to the user's SMS inbox"""

    @abstractmethod
    def has_permission(self) -> bool:
        pass

    @abstractmethod
    def request_permission(self) -> bool:
        """Ask for read access; returns whether it is now granted"""
        pass

    @abstractmethod
    def read_messages(self, since: datetime) -> Iterator[InboxMessage]:
        """Messages received at or after `since`. Raises PermissionDenied."""
        pass


class JsonlInboxSource(InboxSource):
    """Inbox backed by a JSON-lines export file."""

    def __init__(self, path: str, access_granted: bool = False):
        self.path = Path(path)
        self.access_granted = access_granted
        self._granted = False

    def _readable(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.R_OK)

    def has_permission(self) -> bool:
        return self._granted and self._readable()

    def request_permission(self) -> bool:
        self._granted = self.access_granted and self._readable()
        if not self._granted:
            logger.info(f"Inbox access not granted for {self.path}")
        return self._granted

    def read_messages(self, since: datetime) -> Iterator[InboxMessage]:
        if not self.has_permission():
            raise PermissionDenied("SMS inbox read permission not granted")
        since = as_utc(since)
        with self.path.open("r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed inbox line {line_number}")
                    continue
                message = message_from_dict(data) if isinstance(data, dict) else None
                if message is None:
                    logger.debug(f"Skipping incomplete inbox line {line_number}")
                    continue
                if message.received_at >= since:
                    yield message
