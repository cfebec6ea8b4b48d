import re
from decimal import Decimal
from datetime import date, datetime
from typing import Optional

MONTHS = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]


def format_money(amount: Decimal) -> str:
    """Format amount with thousands separator and two decimals"""
    return f"{Decimal(amount):,.2f}"


def format_pay_period(start: Optional[date], end: Optional[date]) -> str:
    """Format pay period as 'May 1 - May 31, 2024'"""
    if start and end:
        return f"{MONTHS[start.month - 1]} {start.day} - {MONTHS[end.month - 1]} {end.day}, {end.year}"
    return f"{start or ''} - {end or ''}"


def format_processed_date(value: Optional[datetime]) -> str:
    """Format timestamp as 'May 31, 2024 09:05am'"""
    if value is None:
        return ""
    hour = value.hour % 12 or 12
    suffix = "pm" if value.hour >= 12 else "am"
    return f"{MONTHS[value.month - 1]} {value.day}, {value.year} {hour:02d}:{value.minute:02d}{suffix}"


def slugify_name(value: Optional[str]) -> str:
    """Collapse non-alphanumeric runs to one underscore, trim and lowercase"""
    return re.sub(r'[^a-z0-9]+', '_', str(value or ''), flags=re.IGNORECASE).strip('_').lower()
