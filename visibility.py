from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence, TypeVar

from labels import label_date
from models import EntryType

T = TypeVar("T")

HIDE_OLD_WINDOW = timedelta(days=56)


@dataclass(frozen=True)
class VisibilityOptions:
    hide_old: bool = True
    hide_paid: bool = False


def _is_payday(row) -> bool:
    return row.type == EntryType.payday.value


def _is_paid_bill(row) -> bool:
    return not _is_payday(row) and bool(getattr(row, "paid", False))


def hide_old_entries(rows: Sequence[T], today: date) -> list[T]:
    cutoff = today - HIDE_OLD_WINDOW
    return [row for row in rows if label_date(row.month, row.date) >= cutoff]


def hide_paid_entries(rows: Sequence[T]) -> list[T]:
    """Drop paid bills, then any payday left with no bills before the next one."""
    unpaid = [row for row in rows if not _is_paid_bill(row)]
    result: list[T] = []
    for idx, row in enumerate(unpaid):
        if _is_payday(row):
            following = unpaid[idx + 1] if idx + 1 < len(unpaid) else None
            if following is None or _is_payday(following):
                continue
        result.append(row)
    return result


def apply_visibility(
    rows: Sequence[T], options: VisibilityOptions, today: date
) -> list[T]:
    visible = list(rows)
    if options.hide_old:
        visible = hide_old_entries(visible, today)
    if options.hide_paid:
        visible = hide_paid_entries(visible)
    return visible


def first_upcoming(rows: Sequence[T], today: date) -> Optional[T]:
    for row in rows:
        if label_date(row.month, row.date) >= today:
            return row
    return None
