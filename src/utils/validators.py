import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def to_decimal(value: Any) -> Decimal:
    """Coerce a payroll amount to Decimal; missing or non-numeric values become 0"""
    if value is None or value == "":
        return Decimal('0')
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return Decimal('0')
    if not amount.is_finite():
        return Decimal('0')
    return amount


def is_iso_date(value: Any) -> bool:
    """Check a YYYY-MM-DD string that is also a real calendar date"""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value.strip()):
        return False
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def parse_date(value: Any) -> Optional[date]:
    """Parse a date, datetime or ISO string; blank values return None"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if is_iso_date(text):
        return date.fromisoformat(text)
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"Invalid date: {text}")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO datetime string (or pass through datetime values)"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[time]:
    """Parse HH:MM or HH:MM:SS; blank values return None"""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return time.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid time: {text}")


def is_positive_id(value: Any) -> bool:
    """Validate a positive integer identifier"""
    try:
        return int(value) > 0
    except (TypeError, ValueError):
        return False
