"""Date arithmetic and formatting used on certificates."""

import calendar
from datetime import date
from typing import Union, Optional

from clearance.submission import ClearanceStatus, VALIDITY_ONE_YEAR, parse_iso_date


def ordinal_suffix(day: int) -> str:
    """English ordinal suffix for a day of the month: 1st, 2nd, 3rd, 4th ... 11th ... 21st."""
    if 3 < day < 21:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def validity_expiry(date_issued: Union[str, date], period: Optional[str]) -> str:
    """Expiry date for an issuance date and validity period, as ``YYYY-MM-DD``.

    "1 Year" adds twelve calendar months; anything else adds six.

    Raises:
        ValueError: If ``date_issued`` is not a valid date
    """
    issued = parse_iso_date(date_issued)
    if issued is None:
        raise ValueError(f"Invalid issuance date: {date_issued!r}")
    months = 12 if period == VALIDITY_ONE_YEAR else 6
    return add_months(issued, months).isoformat()


def format_long_date(value: Union[str, date, None], placeholder: str = "") -> str:
    """``2025-01-15`` -> ``January 15, 2025``"""
    parsed = parse_iso_date(value)
    if parsed is None:
        return placeholder
    return f"{calendar.month_name[parsed.month]} {parsed.day}, {parsed.year}"


def format_month_year(value: Union[str, date, None], placeholder: str = "") -> str:
    parsed = parse_iso_date(value)
    if parsed is None:
        return placeholder
    return f"{calendar.month_name[parsed.month]} {parsed.year}"


def derive_status(expiry: Union[str, date, None], today: Optional[date] = None) -> ClearanceStatus:
    """VALID while the expiry date has not passed, EXPIRED afterwards."""
    expires = parse_iso_date(expiry)
    today = today or date.today()
    if expires is None or expires < today:
        return ClearanceStatus.EXPIRED
    return ClearanceStatus.VALID
