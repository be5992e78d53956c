"""Pay periods and the per-account balance projection over them.

A period starts at a payday and runs until the next one. Bills that come
before the first payday belong to no period; they are surfaced first in the
projection output and get no derived balances.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from amounts import AmountMap, account_key, amount_for, ordered_accounts, zero_map
from models import EntryType
from schemas import Account, Bill, Entry, Payday


@dataclass(frozen=True)
class PayPeriod:
    payday: Payday
    bills: tuple[Bill, ...] = ()


@dataclass(frozen=True)
class ProjectedEntry:
    entry: Entry
    calculated_balances: Optional[AmountMap] = None
    total_owed: Optional[AmountMap] = None

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def type(self) -> str:
        return self.entry.type

    @property
    def month(self) -> str:
        return self.entry.month

    @property
    def date(self) -> int:
        return self.entry.date

    @property
    def paid(self) -> bool:
        return self.entry.type == EntryType.bill.value and self.entry.paid

    def as_dict(self) -> dict[str, object]:
        data = self.entry.model_dump(mode="json", by_alias=True)
        if self.calculated_balances is not None:
            data["calculatedBalances"] = _json_map(self.calculated_balances)
        if self.total_owed is not None:
            data["totalOwed"] = _json_map(self.total_owed)
        return data


def _json_map(amounts: AmountMap) -> dict[str, str]:
    return {key: str(value) for key, value in amounts.items()}


@dataclass
class _OpenPeriod:
    payday: Payday
    bills: list[Bill] = field(default_factory=list)


def group_periods(
    sorted_entries: Iterable[Entry],
) -> tuple[list[Bill], list[PayPeriod]]:
    orphans: list[Bill] = []
    periods: list[PayPeriod] = []
    current: Optional[_OpenPeriod] = None
    for entry in sorted_entries:
        if entry.type == EntryType.payday.value:
            if current is not None:
                periods.append(PayPeriod(current.payday, tuple(current.bills)))
            current = _OpenPeriod(entry)
        elif current is not None:
            current.bills.append(entry)
        else:
            orphans.append(entry)
    if current is not None:
        periods.append(PayPeriod(current.payday, tuple(current.bills)))
    return orphans, periods


def period_totals(
    period: PayPeriod, accounts: Sequence[Account]
) -> tuple[AmountMap, AmountMap]:
    """Return (owed, remaining) per account for one period."""
    owed = zero_map(accounts)
    paid = zero_map(accounts)
    for bill in period.bills:
        for account in accounts:
            key = account_key(account)
            amount = amount_for(bill.amounts, account)
            if not amount:
                continue
            owed[key] += amount
            if bill.paid:
                paid[key] += amount
    remaining = {key: owed[key] - paid[key] for key in owed}
    return owed, remaining


def project(
    sorted_entries: Iterable[Entry], accounts: Iterable[Account]
) -> list[ProjectedEntry]:
    ordered = ordered_accounts(accounts)
    orphans, periods = group_periods(sorted_entries)

    result = [ProjectedEntry(bill) for bill in orphans]
    for period in periods:
        owed, remaining = period_totals(period, ordered)
        result.append(
            ProjectedEntry(
                period.payday,
                calculated_balances=dict(remaining),
                total_owed=dict(owed),
            )
        )
        for bill in period.bills:
            result.append(ProjectedEntry(bill, calculated_balances=dict(remaining)))
    return result


def projection_index(rows: Iterable[ProjectedEntry]) -> dict[str, ProjectedEntry]:
    return {row.id: row for row in rows}
