"""Year-to-date comparison of bill templates against what was actually paid.

The drift signal is a fixed-threshold heuristic: a template is flagged when
its current total differs from the historical average paid amount by more
than one cent. No statistics are involved.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from amounts import ZERO, map_total
from models import ChangeType, EntryType
from schemas import Bill, BillTemplate, Entry

CHANGE_THRESHOLD = Decimal("0.01")


@dataclass(frozen=True)
class BillAnalytics:
    template_id: str
    template_name: str
    ytd_paid: Decimal
    ytd_planned: Decimal
    paid_count: int
    planned_count: int
    current_amount: Decimal
    average_paid_amount: Decimal
    has_change: bool
    change_type: ChangeType
    change_amount: Decimal
    change_percentage: Decimal


def year_markers(year: int) -> tuple[str, str, str]:
    short = f"{year % 100:02d}"
    return (f"'{short}", f" {short}", str(year))


def _matches_year(label: str, markers: tuple[str, ...]) -> bool:
    return any(marker in label for marker in markers)


def template_entries(
    template: BillTemplate, entries: Iterable[Entry], year: int
) -> list[Bill]:
    """Bills of ``year`` generated from the template, plus unlinked bills
    sharing its name (entries created before templates were linked)."""
    markers = year_markers(year)
    matched: list[Bill] = []
    for entry in entries:
        if entry.type != EntryType.bill.value:
            continue
        if not _matches_year(entry.month, markers):
            continue
        if entry.template_id == template.id:
            matched.append(entry)
        elif not entry.template_id and entry.name == template.name:
            matched.append(entry)
    return matched


def analyze_template(
    template: BillTemplate, entries: Iterable[Entry], year: int
) -> BillAnalytics:
    matched = template_entries(template, entries, year)
    paid = [bill for bill in matched if bill.paid]

    ytd_paid = sum((map_total(bill.amounts) for bill in paid), ZERO)
    planned_count = len(matched)
    current_amount = map_total(template.amounts)
    ytd_planned = planned_count * current_amount
    average_paid = ytd_paid / len(paid) if paid else ZERO

    has_change = False
    change_type = ChangeType.none
    change_amount = ZERO
    change_percentage = ZERO
    if paid and average_paid > 0:
        diff = current_amount - average_paid
        if abs(diff) > CHANGE_THRESHOLD:
            has_change = True
            change_amount = diff
            change_percentage = diff / average_paid * 100
            change_type = ChangeType.increase if diff > 0 else ChangeType.decrease

    return BillAnalytics(
        template_id=template.id,
        template_name=template.name,
        ytd_paid=ytd_paid,
        ytd_planned=ytd_planned,
        paid_count=len(paid),
        planned_count=planned_count,
        current_amount=current_amount,
        average_paid_amount=average_paid,
        has_change=has_change,
        change_type=change_type,
        change_amount=change_amount,
        change_percentage=change_percentage,
    )


def calculate_bill_analytics(
    templates: Iterable[BillTemplate], entries: Iterable[Entry], year: int
) -> list[BillAnalytics]:
    entries = list(entries)
    return [analyze_template(template, entries, year) for template in templates]


def changed_bills(
    analytics: Sequence[BillAnalytics], dismissed: Optional[Iterable[str]] = None
) -> list[BillAnalytics]:
    skip = set(dismissed or ())
    return [row for row in analytics if row.has_change and row.template_id not in skip]
