"""
General helper utilities
"""
import calendar
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def round2(amount: float) -> float:
    """Round a money amount half-up to 2 decimal places"""
    if amount is None:
        return 0.0
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def month_date_range(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a billing month"""
    if month < 1 or month > 12:
        raise ValueError("Invalid year or month")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)
