import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from amounts import dump_amounts
from config import get_settings
from labels import MONTHS, format_month_label, month_index, overflow_date
from models import (
    BillTemplate as BillTemplateRow,
    Entry as EntryRow,
    EntryType,
    PaydayTemplate as PaydayTemplateRow,
    RecurrenceType,
    new_id,
)
from schemas import Bill, BillTemplate, Entry, Payday, PaydayTemplate

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_DAYS = 30
FIXED_INTERVALS = {
    RecurrenceType.weekly: 7,
    RecurrenceType.bi_weekly: 14,
}
INTERVAL_RECURRENCES = {
    RecurrenceType.weekly,
    RecurrenceType.bi_weekly,
    RecurrenceType.custom_interval,
}

Template = Union[BillTemplate, PaydayTemplate]
NaturalKey = tuple[Optional[str], str, int]


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_window(template: Template) -> tuple[int, int]:
    start = month_index(template.start_month)
    end = month_index(template.end_month)
    return (0 if start is None else start, 11 if end is None else end)


def interval_days(template: Template) -> int:
    fixed = FIXED_INTERVALS.get(template.recurrence)
    if fixed is not None:
        return fixed
    custom = getattr(template, "interval_days", None)
    if not custom or custom <= 0:
        return DEFAULT_INTERVAL_DAYS
    return custom


def occurrence_dates(template: Template, year: int) -> list[tuple[str, int]]:
    """(month name, day) pairs a template produces within ``year``.

    Yearly and one-time templates whose own month lies outside their
    start/end window produce nothing.
    """
    start_idx, end_idx = month_window(template)

    def in_window(idx: Optional[int]) -> bool:
        return idx is not None and start_idx <= idx <= end_idx

    recurrence = template.recurrence
    dates: list[tuple[str, int]] = []

    if recurrence in (RecurrenceType.one_time, RecurrenceType.yearly):
        target = template.month or "Jan"
        if in_window(month_index(target)):
            dates.append((target, template.day))
    elif recurrence == RecurrenceType.monthly:
        for idx, name in enumerate(MONTHS):
            if in_window(idx):
                dates.append((name, template.day))
    elif recurrence == RecurrenceType.semi_monthly:
        for idx, name in enumerate(MONTHS):
            if in_window(idx):
                dates.append((name, template.day))
                if template.day2:
                    dates.append((name, template.day2))
    elif recurrence == RecurrenceType.manual:
        for manual in getattr(template, "manual_dates", None) or []:
            if in_window(month_index(manual.month)):
                dates.append((manual.month, manual.day))
    elif recurrence in INTERVAL_RECURRENCES:
        step = timedelta(days=interval_days(template))
        cursor = overflow_date(year, start_idx, template.day)
        while cursor.year == year:
            idx = cursor.month - 1
            if in_window(idx):
                dates.append((MONTHS[idx], cursor.day))
            cursor += step
    return dates


def _build_entry(
    template: Template, month: str, day: int, year: int, entry_id: str
) -> Entry:
    label = format_month_label(month, year)
    if isinstance(template, BillTemplate):
        return Bill(
            id=entry_id,
            template_id=template.id,
            name=template.name,
            month=label,
            date=day,
            paid=False,
            amounts=dict(template.amounts),
        )
    return Payday(
        id=entry_id,
        template_id=template.id,
        name=template.name,
        month=label,
        date=day,
        balances=dict(template.balances),
    )


def expand_templates(
    bill_templates: Iterable[BillTemplate],
    payday_templates: Iterable[PaydayTemplate],
    year: int,
    *,
    id_factory: Callable[[], str] = new_id,
) -> list[Entry]:
    entries: list[Entry] = []
    for template in [*bill_templates, *payday_templates]:
        if not template.auto_generate or not template.is_active:
            continue
        for month, day in occurrence_dates(template, year):
            entries.append(_build_entry(template, month, day, year, id_factory()))
    return entries


def natural_key(entry: Union[Entry, EntryRow]) -> NaturalKey:
    return (entry.template_id, entry.month, entry.date)


def missing_entries(
    generated: Sequence[Entry], existing: Iterable[Union[Entry, EntryRow]]
) -> list[Entry]:
    seen = {natural_key(entry) for entry in existing}
    result: list[Entry] = []
    for entry in generated:
        key = natural_key(entry)
        if key in seen:
            continue
        seen.add(key)
        result.append(entry)
    return result


def entry_row(entry: Entry, user_id: int) -> EntryRow:
    is_bill = entry.type == EntryType.bill.value
    return EntryRow(
        id=entry.id,
        user_id=user_id,
        template_id=entry.template_id,
        type=EntryType(entry.type),
        date=entry.date,
        month=entry.month,
        name=entry.name,
        paid=entry.paid if is_bill else False,
        amounts=dump_amounts(entry.amounts) if is_bill else {},
        balances={} if is_bill else dump_amounts(entry.balances),
    )


class TemplateSyncEngine:
    """Materialises template entries into the store for one year at a time."""

    def __init__(self, session: Session, user_id: int = 1) -> None:
        self.session = session
        self.user_id = user_id

    def _existing(self, template_id: str) -> list[EntryRow]:
        stmt = select(EntryRow).where(
            EntryRow.user_id == self.user_id,
            EntryRow.template_id == template_id,
        )
        return list(self.session.scalars(stmt).all())

    def sync_template(self, template: Template, year: Optional[int] = None) -> int:
        year = year or local_today().year
        if isinstance(template, BillTemplate):
            generated = expand_templates([template], [], year)
        else:
            generated = expand_templates([], [template], year)
        fresh = missing_entries(generated, self._existing(template.id))
        for entry in fresh:
            self.session.add(entry_row(entry, self.user_id))
        self.session.flush()
        if fresh:
            logger.info(
                f"template_sync: template={template.id} year={year} added={len(fresh)}"
            )
        return len(fresh)

    def remove_unpaid(self, template_id: str) -> int:
        stmt = delete(EntryRow).where(
            EntryRow.user_id == self.user_id,
            EntryRow.template_id == template_id,
            EntryRow.paid.is_(False),
        )
        result = self.session.execute(stmt)
        self.session.flush()
        logger.info(f"template_removed: template={template_id} deleted={result.rowcount}")
        return result.rowcount

    def sync_all(self, year: Optional[int] = None) -> int:
        year = year or local_today().year
        bill_rows = self.session.scalars(
            select(BillTemplateRow).where(BillTemplateRow.user_id == self.user_id)
        ).all()
        payday_rows = self.session.scalars(
            select(PaydayTemplateRow).where(PaydayTemplateRow.user_id == self.user_id)
        ).all()
        count = 0
        for row in bill_rows:
            count += self.sync_template(BillTemplate.model_validate(row), year)
        for row in payday_rows:
            count += self.sync_template(PaydayTemplate.model_validate(row), year)
        return count
