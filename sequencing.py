from typing import Iterable, TypeVar

from labels import parse_month_index, parse_year_short
from models import EntryType

T = TypeVar("T")

SortKey = tuple[int, int, int, int]


def sort_key(entry, *, strict: bool = False) -> SortKey:
    """Year, month, day, then paydays ahead of bills on the same day."""
    return (
        parse_year_short(entry.month, strict=strict),
        parse_month_index(entry.month, strict=strict),
        entry.date,
        0 if entry.type == EntryType.payday.value else 1,
    )


def sequence(entries: Iterable[T], *, strict: bool = False) -> list[T]:
    # sorted() is stable: exact key ties keep their input order.
    return sorted(entries, key=lambda entry: sort_key(entry, strict=strict))
