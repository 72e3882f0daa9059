"""
Debit/credit totals and date-grouped views over stored transactions.
"""

from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from smsledger.models.transaction import SmsTransaction, TransactionDirection
from smsledger.parsers.fields import as_utc
from smsledger.schemas.summary import MonthTrend, PeriodSummary

ZERO = Decimal("0.00")


def summarize(db: Session, user_id: str, period_start: datetime, period_end: datetime) -> PeriodSummary:
    """
    Totals over [period_start, period_end).
    net = total_credit - total_debit
    """
    start, end = as_utc(period_start), as_utc(period_end)
    if end < start:
        raise ValueError("period_end must not be before period_start")

    rows = db.query(
        SmsTransaction.direction,
        func.sum(SmsTransaction.amount),
        func.count(SmsTransaction.id)
    ).filter(
        SmsTransaction.owner_user_id == user_id,
        SmsTransaction.timestamp >= start,
        SmsTransaction.timestamp < end
    ).group_by(SmsTransaction.direction).all()

    totals = {TransactionDirection.debit: ZERO, TransactionDirection.credit: ZERO}
    count = 0
    for direction, amount, n in rows:
        totals[direction] = Decimal(amount or 0).quantize(ZERO)
        count += n

    return PeriodSummary(
        user_id=user_id,
        period_start=start,
        period_end=end,
        total_debit=totals[TransactionDirection.debit],
        total_credit=totals[TransactionDirection.credit],
        net=totals[TransactionDirection.credit] - totals[TransactionDirection.debit],
        count=count,
    )


def _local_date(moment: datetime, tz: Optional[tzinfo]) -> date:
    moment = as_utc(moment)
    # astimezone() without an argument uses the system zone at that instant
    return (moment.astimezone(tz) if tz else moment.astimezone()).date()


def group_by_date(records: Iterable[SmsTransaction], tz: Optional[tzinfo] = None) -> Dict[str, List[SmsTransaction]]:
    """
    Group records under ISO date labels (YYYY-MM-DD) of their local calendar
    date. Labels and the records under each are newest first.
    """
    ordered = sorted(records, key=lambda r: r.identity_key or "")
    ordered.sort(key=lambda r: as_utc(r.timestamp), reverse=True)

    groups: Dict[str, List[SmsTransaction]] = {}
    for record in ordered:
        label = _local_date(record.timestamp, tz).isoformat()
        groups.setdefault(label, []).append(record)
    return groups


def _month_start(year: int, month: int, tz: tzinfo) -> datetime:
    return datetime.combine(date(year, month, 1), time(0), tzinfo=tz)


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_bounds(month: Optional[str], tz: tzinfo = timezone.utc, today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    [start, end) of a YYYY-MM month at local midnight in `tz`; the current
    month when `month` is None.
    """
    if month:
        try:
            year, m = map(int, month.split('-'))
            start = _month_start(year, m, tz)
        except ValueError as e:
            raise ValueError(f"Invalid month '{month}', expected YYYY-MM") from e
    else:
        today = today or datetime.now(tz).date()
        year, m = today.year, today.month
        start = _month_start(year, m, tz)
    end = _month_start(*_shift_month(year, m, 1), tz)
    return start, end


def monthly_trends(
    db: Session,
    user_id: str,
    months: int = 6,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc
) -> List[MonthTrend]:
    """Totals for the last `months` months, oldest first, current month included."""
    today = today or datetime.now(tz).date()
    trends = []
    for i in range(months - 1, -1, -1):
        year, m = _shift_month(today.year, today.month, -i)
        label = f"{year}-{m:02d}"
        start, end = month_bounds(label, tz)
        summary = summarize(db, user_id, start, end)
        trends.append(MonthTrend(
            month=label,
            total_debit=summary.total_debit,
            total_credit=summary.total_credit,
            net=summary.net,
            count=summary.count,
        ))
    return trends
