"""
Summary schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal


class PeriodSummary(BaseModel):
    """Totals over [period_start, period_end)."""
    user_id: str
    period_start: datetime
    period_end: datetime
    total_debit: Decimal
    total_credit: Decimal
    net: Decimal
    count: int


class MonthTrend(BaseModel):
    month: str
    total_debit: Decimal
    total_credit: Decimal
    net: Decimal
    count: int
