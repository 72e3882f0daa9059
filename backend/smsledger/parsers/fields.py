"""
Field extractors for bank/payment SMS text.

Every helper is total: it returns None (or a default) when the field is
absent and never raises on odd input.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Tuple

from smsledger.models.transaction import TransactionDirection, TransactionMode

MAX_MERCHANT_LENGTH = 40
UNKNOWN_MERCHANT = "Unknown"
# Numeric(12, 2) ledger column
MAX_AMOUNT_DIGITS = 10
MAX_AMOUNT = Decimal("9999999999.99")

# Amount: Rs.1,234.56 | Rs 1,00,000 | INR 1234 | ₹1,234.00 | 1,234.00 INR
_CURRENCY = r"(?:rs\.?|inr|₹)"
_NUMBER = r"(\d+(?:,\d+)*(?:\.\d+)?)"
_AMOUNT_PATTERNS = (
    re.compile(rf"(?<![a-z]){_CURRENCY}\s*{_NUMBER}", re.IGNORECASE),
    re.compile(rf"(?<![\d,.]){_NUMBER}\s*(?:rs|inr|₹)(?![a-z])", re.IGNORECASE),
)
# Balance/limit figures are not the transaction amount
_BALANCE_CONTEXT = re.compile(
    r"(?:bal(?:ance)?|limit|avl|avbl|available)\s*(?:is|of)?\s*[:\-]?\s*$",
    re.IGNORECASE,
)

_DEBIT_WORDS = re.compile(
    r"\b(?:debited|debit(?!\s*card)|spent|paid|sent|withdrawn|purchased?|transferred|deducted|used\s+for)\b",
    re.IGNORECASE,
)
_CREDIT_WORDS = re.compile(
    r"\b(?:credited|credit(?!\s*card)|received|deposited|refund(?:ed)?|reversed)\b",
    re.IGNORECASE,
)

_UPI_HANDLE = re.compile(
    r"(?<![\w.\-])([A-Za-z0-9][A-Za-z0-9._\-]{1,255}@[A-Za-z][A-Za-z0-9]{1,63})(?![\w@]|\.[A-Za-z])"
)

_MODE_RULES: Tuple[Tuple[TransactionMode, re.Pattern], ...] = (
    (TransactionMode.upi, re.compile(r"\bupi\b", re.IGNORECASE)),
    (TransactionMode.card, re.compile(r"\b(?:card|pos)\b", re.IGNORECASE)),
    (TransactionMode.net_banking, re.compile(
        r"\b(?:neft|imps|rtgs|net\s*banking|internet\s+banking)\b", re.IGNORECASE)),
    (TransactionMode.cash, re.compile(r"\b(?:atm|cash)\b", re.IGNORECASE)),
)

_REFERENCE = re.compile(
    r"\b(?:upi\s*ref(?:erence)?(?:\s*no\.?)?"
    r"|ref(?:erence)?(?:\s*(?:no|num|number|id))?\.?"
    r"|txn\s*(?:id|no)?\.?"
    r"|utr(?:\s*no\.?)?"
    r"|rrn"
    r"|upi\s*[:/])"
    r"\s*[:#.\-]?\s*([A-Za-z0-9]{6,30})\b",
    re.IGNORECASE,
)

_MERCHANT_STOP = (
    r"(?=\s+(?:on|via|using|with|for|upi|ref|txn|utr|rrn|avl|avbl|bal|info|thru|through"
    r"|dated|from|to|at|by|is|has|was|if|not|call|sms|neft|imps|rtgs)\b"
    r"|\s*[,;:()\[\]]|\.(?:\s|$)|\s*$)"
)
_MERCHANT = re.compile(
    rf"\b(?P<marker>to|at|from|by|towards)\s+(?P<name>[A-Za-z0-9@&'*_\-./ ]{{1,80}}?){_MERCHANT_STOP}",
    re.IGNORECASE,
)
_NOT_A_MERCHANT = re.compile(
    r"^(?:a/?c\b|ac\b|acct\b|account\b|your\b|ur\b|card\b|xx|\*|beneficiary\b|mob(?:ile)?\b|self\b)",
    re.IGNORECASE,
)
_MERCHANT_PREFIX = re.compile(r"^(?:vpa|mr\.?|ms\.?|m/s\.?)\s+", re.IGNORECASE)
_MERCHANT_PREFERENCE = {
    TransactionDirection.debit: ("to", "at", "towards", "from"),
    TransactionDirection.credit: ("from", "by", "to"),
}

_ACCOUNT = re.compile(
    r"\b(?:a/?c|acct|account|card)(?:\s*(?:no\.?|number|ending(?:\s+with)?))?\s*[:\-]?\s*[Xx*.]*(\d{3,6})\b",
    re.IGNORECASE,
)

_BANKS: Tuple[Tuple[str, re.Pattern], ...] = tuple(
    (label, re.compile(pattern, re.IGNORECASE)) for label, pattern in (
        ("SBI", r"\bsbi\b|state bank of india"),
        ("HDFC", r"\bhdfc\b"),
        ("ICICI", r"\bicici\b"),
        ("Axis", r"\baxis\b"),
        ("PNB", r"\bpnb\b|punjab national bank"),
        ("Bank of India", r"\bboi\b|\bbank of india\b"),
        ("Canara", r"\bcanara\b"),
        ("Union Bank", r"\bunion bank\b"),
        ("Kotak", r"\bkotak\b"),
        ("Yes Bank", r"\byes\s*bank\b"),
        ("IndusInd", r"\bindusind\b"),
        ("IDFC First", r"\bidfc\b"),
        ("Federal", r"\bfederal bank\b"),
        ("Bank of Baroda", r"\bbob\b|\bbank of baroda\b"),
        ("Citi", r"\bciti(?:bank)?\b"),
        ("HSBC", r"\bhsbc\b"),
        ("Standard Chartered", r"\bstandard chartered\b"),
    )
)
# DLT sender ids, e.g. "VM-HDFCBK", "AD-SBIINB"
_SENDER_BANKS = (
    ("HDFC", "HDFC"), ("ICICI", "ICICI"), ("SBI", "SBI"), ("AXIS", "Axis"), ("PNB", "PNB"),
    ("BOI", "Bank of India"), ("CNRB", "Canara"), ("UNION", "Union Bank"), ("KOTAK", "Kotak"),
    ("YESB", "Yes Bank"), ("INDUS", "IndusInd"), ("IDFC", "IDFC First"), ("FEDBNK", "Federal"),
    ("BOBARB", "Bank of Baroda"), ("CITI", "Citi"), ("HSBC", "HSBC"), ("SCBANK", "Standard Chartered"),
)

_CATEGORY_RULES = (
    ("Food & Dining", ("ZOMATO", "SWIGGY", "UBER EATS", "RESTAURANT", "CAFE"), ("FOOD",)),
    ("Shopping", ("AMAZON", "FLIPKART", "MYNTRA", "AJIO", "MEESHO"), ("SHOPPING",)),
    ("Groceries", ("BIGBASKET", "BLINKIT", "ZEPTO", "DMART", "GROFERS"), ("GROCER",)),
    ("Transportation", ("UBER", "OLA", "RAPIDO", "IRCTC"), ("PETROL", "FUEL")),
    ("Utilities", ("JIO", "AIRTEL", "BESCOM", "TATA POWER"), ("ELECTRICITY", "WATER", "RECHARGE", " GAS ")),
    ("Entertainment", ("NETFLIX", "PRIME", "HOTSTAR", "SPOTIFY", "BOOKMYSHOW"), ()),
)

_MONTHS = {m: i for i, m in enumerate(
    ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"), start=1)}
_DATE_ISO = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_DATE_NUMERIC = re.compile(r"(?<![\d.,])(\d{1,2})[-/.](\d{1,2})[-/.](\d{4}|\d{2})(?!\d|[.,]\d)")
_DATE_NAMED = re.compile(
    r"\b(\d{1,2})[-\s]?(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*[-\s,]*(\d{4}|\d{2})\b",
    re.IGNORECASE,
)
_TIME = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?\b")
_MAX_MESSAGE_AGE = timedelta(days=400)


def parse_amount(text: str) -> Optional[Decimal]:
    """
    First currency-marked amount that is not a balance, as a 2dp Decimal.

    An amount too large for the ledger column makes the message unparseable.
    """
    matches: List[re.Match] = []
    for pattern in _AMOUNT_PATTERNS:
        matches.extend(pattern.finditer(text))
    matches.sort(key=lambda m: m.start())

    for match in matches:
        if _BALANCE_CONTEXT.search(text[max(0, match.start() - 24):match.start()]):
            continue
        digits = match.group(1).replace(",", "")
        if len(digits.split(".")[0].lstrip("0")) > MAX_AMOUNT_DIGITS:
            return None
        try:
            amount = Decimal(digits).quantize(Decimal("0.01"))
        except InvalidOperation:
            continue
        return amount if amount <= MAX_AMOUNT else None
    return None


def find_direction(text: str) -> Optional[TransactionDirection]:
    """Direction of the earliest debit/credit keyword."""
    debit = _DEBIT_WORDS.search(text)
    credit = _CREDIT_WORDS.search(text)
    if debit and credit:
        return TransactionDirection.debit if debit.start() < credit.start() else TransactionDirection.credit
    if debit:
        return TransactionDirection.debit
    if credit:
        return TransactionDirection.credit
    return None


def find_upi_id(text: str) -> Optional[str]:
    match = _UPI_HANDLE.search(text)
    return match.group(1) if match else None


def find_mode(text: str) -> TransactionMode:
    for mode, pattern in _MODE_RULES:
        if pattern.search(text):
            return mode
    if find_upi_id(text):
        return TransactionMode.upi
    return TransactionMode.other


def find_reference(text: str) -> Optional[str]:
    """Reference/UTR/RRN token; must contain at least one digit."""
    for match in _REFERENCE.finditer(text):
        token = match.group(1)
        if any(c.isdigit() for c in token):
            return token
    return None


def _clean_merchant(name: str) -> Optional[str]:
    name = _MERCHANT_PREFIX.sub("", name.strip())
    name = re.sub(r"\s+", " ", name).strip(" .-/*")
    if len(name) < 2 or _NOT_A_MERCHANT.match(name):
        return None
    if re.fullmatch(r"[\dXx*\s.:/\-]+", name):
        return None
    return name[:MAX_MERCHANT_LENGTH].rstrip()


def find_merchant(text: str, direction: TransactionDirection) -> Optional[str]:
    """Counterparty following to/at/from/by/towards, in the order preferred for the direction."""
    found = []
    for match in _MERCHANT.finditer(text):
        name = _clean_merchant(match.group("name"))
        if name:
            found.append((match.group("marker").lower(), name))

    for marker in _MERCHANT_PREFERENCE[direction]:
        for found_marker, name in found:
            if found_marker == marker:
                return name
    return None


def find_account_last4(text: str) -> Optional[str]:
    match = _ACCOUNT.search(text)
    return match.group(1)[-4:] if match else None


def find_bank(text: str, sender: Optional[str] = None) -> Optional[str]:
    for label, pattern in _BANKS:
        if pattern.search(text):
            return label
    if sender:
        normalized = re.sub(r"[^A-Z]", "", sender.upper())
        for token, label in _SENDER_BANKS:
            if token in normalized:
                return label
    return None


def categorize(merchant: Optional[str], text: str) -> Optional[str]:
    """Coarse category from merchant and message keywords."""
    if not merchant or merchant == UNKNOWN_MERCHANT:
        return None
    merchant_upper = merchant.upper()
    text_upper = f" {text.upper()} "
    for category, merchant_words, message_words in _CATEGORY_RULES:
        if any(w in merchant_upper for w in merchant_words):
            return category
        if any(w in text_upper for w in message_words):
            return category
    return "Other"


def _expand_year(year: int) -> int:
    return year + 2000 if year < 100 else year


def find_message_date(text: str) -> Optional[date]:
    """First calendar date written in the message (day-first formats)."""
    candidates = []
    for match in _DATE_ISO.finditer(text):
        candidates.append((match.start(), int(match.group(1)), int(match.group(2)), int(match.group(3))))
    for match in _DATE_NUMERIC.finditer(text):
        candidates.append((match.start(), _expand_year(int(match.group(3))),
                           int(match.group(2)), int(match.group(1))))
    for match in _DATE_NAMED.finditer(text):
        candidates.append((match.start(), _expand_year(int(match.group(3))),
                           _MONTHS[match.group(2).lower()[:3]], int(match.group(1))))

    for _, year, month, day in sorted(candidates):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def find_message_time(text: str) -> Optional[time]:
    match = _TIME.search(text)
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))


def as_utc(moment: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def resolve_timestamp(text: str, received_at: datetime, utc_offset_minutes: int) -> datetime:
    """
    When the transaction happened.

    Uses the date (and time, if any) written in the message, read at the
    given UTC offset. Falls back to the receipt time when the message has no
    date, or its date is after receipt or implausibly old.
    """
    received_utc = as_utc(received_at)
    try:
        return _stated_timestamp(text, received_utc, utc_offset_minutes)
    except OverflowError:
        # Receipt time at the edge of the datetime range
        return received_utc


def _stated_timestamp(text: str, received_utc: datetime, utc_offset_minutes: int) -> datetime:
    tz = timezone(timedelta(minutes=utc_offset_minutes))
    local_received = received_utc.astimezone(tz)

    message_date = find_message_date(text)
    if message_date is None or message_date > local_received.date():
        return received_utc
    if local_received.date() - message_date > _MAX_MESSAGE_AGE:
        return received_utc

    message_time = find_message_time(text)
    if message_time is not None:
        stated = datetime.combine(message_date, message_time, tzinfo=tz).astimezone(timezone.utc)
        return min(stated, received_utc)
    if message_date == local_received.date():
        return received_utc
    return datetime.combine(message_date, local_received.timetz()).astimezone(timezone.utc)
