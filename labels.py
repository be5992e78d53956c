"""Month labels of the form ``"Jan '26"``.

Entries carry their month and 2-digit year as a single label; the day of
month is stored separately. Parsing is forgiving by default: an unreadable
year falls back to ``'26`` and an unknown month name to January. Pass
``strict=True`` to get :class:`MalformedMonthLabel` instead.
"""

import re
from datetime import date, timedelta
from typing import Optional

MONTHS = [
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
]
MONTH_INDEX: dict[str, int] = {name: idx for idx, name in enumerate(MONTHS)}

DEFAULT_YEAR_SHORT = 26
_LEADING_DIGITS = re.compile(r"\s*(\d+)")


class MalformedMonthLabel(ValueError):
    pass


def month_index(name: Optional[str]) -> Optional[int]:
    if name is None:
        return None
    return MONTH_INDEX.get(name)


def format_month_label(month: str, year: int) -> str:
    return f"{month} '{year % 100:02d}"


def parse_year_short(label: str, *, strict: bool = False) -> int:
    parts = label.split("'")
    if len(parts) > 1:
        match = _LEADING_DIGITS.match(parts[1])
        # Longer digit runs are not a 2-digit year and would overflow a date.
        if match and len(match.group(1)) <= 2:
            return int(match.group(1))
    if strict:
        raise MalformedMonthLabel(f"Month label {label!r} has no 2-digit year")
    return DEFAULT_YEAR_SHORT


def parse_month_index(label: str, *, strict: bool = False) -> int:
    name = label.split(" ")[0]
    idx = MONTH_INDEX.get(name)
    if idx is None:
        if strict:
            raise MalformedMonthLabel(f"Month label {label!r} has no known month")
        return 0
    return idx


def validate_month_label(label: str) -> str:
    parse_year_short(label, strict=True)
    parse_month_index(label, strict=True)
    return label


def overflow_date(year: int, month_idx: int, day: int) -> date:
    """Build a date the way a lenient calendar does: day 31 of a 30-day
    month rolls over into the next month."""
    return date(year, month_idx + 1, 1) + timedelta(days=day - 1)


def label_date(label: str, day: int, *, strict: bool = False) -> date:
    year = 2000 + parse_year_short(label, strict=strict)
    return overflow_date(year, parse_month_index(label, strict=strict), day)
