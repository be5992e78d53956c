from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from amounts import (
    dump_amounts,
    normalize_amounts,
    ordered_accounts,
    remove_amount,
    set_amount,
)
from analytics import BillAnalytics, calculate_bill_analytics, changed_bills
from backup import check_backup, reassign_ids
from config import get_settings
from labels import validate_month_label
from models import (
    Account as AccountRow,
    BillTemplate as BillTemplateRow,
    Entry as EntryRow,
    EntryType,
    PaydayTemplate as PaydayTemplateRow,
    new_id,
)
from periods import ProjectedEntry, project, projection_index
from recurrence import TemplateSyncEngine, entry_row, local_today, natural_key
from schemas import (
    Account,
    AccountIn,
    BackupFile,
    Bill,
    BillIn,
    BillTemplate,
    BillTemplateIn,
    Entry,
    Payday,
    PaydayIn,
    PaydayTemplate,
    PaydayTemplateIn,
)
from sequencing import sequence
from visibility import VisibilityOptions, apply_visibility, first_upcoming

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


class AccountNameConflict(ValueError):
    pass


def entry_schema(row: EntryRow) -> Entry:
    if row.type == EntryType.payday:
        return Payday(
            id=row.id,
            template_id=row.template_id,
            name=row.name,
            date=row.date,
            month=row.month,
            balances=row.balances or {},
        )
    return Bill(
        id=row.id,
        template_id=row.template_id,
        name=row.name,
        date=row.date,
        month=row.month,
        paid=row.paid,
        amounts=row.amounts or {},
    )


class AccountService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[AccountRow]:
        stmt = (
            select(AccountRow)
            .where(AccountRow.user_id == self.user_id)
            .order_by(AccountRow.order, AccountRow.name)
        )
        return list(self.session.scalars(stmt).all())

    def list_schemas(self) -> list[Account]:
        return [Account.model_validate(row) for row in self.list_all()]

    def get(self, account_id: str) -> AccountRow:
        account = self.session.get(AccountRow, account_id)
        if not account or account.user_id != self.user_id:
            raise ValueError("Account not found")
        return account

    def _ensure_unique(self, name: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(AccountRow.id).where(
            AccountRow.user_id == self.user_id,
            func.lower(AccountRow.name) == name.lower(),
        )
        if exclude_id:
            stmt = stmt.where(AccountRow.id != exclude_id)
        if self.session.execute(stmt.limit(1)).scalar_one_or_none():
            raise AccountNameConflict(f"Account {name!r} already exists")

    def next_order(self) -> int:
        highest = self.session.scalar(
            select(func.max(AccountRow.order)).where(AccountRow.user_id == self.user_id)
        )
        return 0 if highest is None else highest + 1

    def create(self, data: AccountIn) -> AccountRow:
        self._ensure_unique(data.name)
        account = AccountRow(
            user_id=self.user_id, name=data.name, order=self.next_order()
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def rename(self, account_id: str, data: AccountIn) -> AccountRow:
        # Amount maps are keyed by name; existing entries keep the old key.
        account = self.get(account_id)
        self._ensure_unique(data.name, exclude_id=account_id)
        account.name = data.name
        self.session.commit()
        self.session.refresh(account)
        return account

    def delete(self, account_id: str) -> None:
        account = self.get(account_id)
        self.session.delete(account)
        self.session.commit()

    def reorder(self, ids: list[str]) -> list[AccountRow]:
        accounts = [self.get(account_id) for account_id in ids]
        for index, account in enumerate(accounts):
            account.order = index
        self.session.commit()
        return self.list_all()


class _TemplateService:
    row_model: type
    schema: type
    label: str

    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        *,
        year: Optional[int] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.year = year
        self.sync = TemplateSyncEngine(session, self.user_id)

    def row_fields(self, data) -> dict[str, object]:
        raise NotImplementedError

    def list_all(self) -> list:
        model = self.row_model
        stmt = (
            select(model)
            .where(model.user_id == self.user_id)
            .order_by(model.name, model.id)
        )
        return list(self.session.scalars(stmt).all())

    def list_schemas(self) -> list:
        return [self.schema.model_validate(row) for row in self.list_all()]

    def get(self, template_id: str):
        template = self.session.get(self.row_model, template_id)
        if not template or template.user_id != self.user_id:
            raise ValueError(f"{self.label} not found")
        return template

    def create(self, data):
        template = self.row_model(user_id=self.user_id, **self.row_fields(data))
        self.session.add(template)
        self.session.flush()
        self.sync.sync_template(self.schema.model_validate(template), self.year)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update(self, template_id: str, data):
        # Already materialised entries keep their amounts; only missing
        # occurrences are added.
        template = self.get(template_id)
        for field, value in self.row_fields(data).items():
            setattr(template, field, value)
        self.session.flush()
        self.sync.sync_template(self.schema.model_validate(template), self.year)
        self.session.commit()
        self.session.refresh(template)
        return template

    def delete(self, template_id: str) -> int:
        template = self.get(template_id)
        removed = self.sync.remove_unpaid(template.id)
        self.session.delete(template)
        self.session.commit()
        return removed


class BillTemplateService(_TemplateService):
    row_model = BillTemplateRow
    schema = BillTemplate
    label = "Bill template"

    def row_fields(self, data: BillTemplateIn) -> dict[str, object]:
        return {
            "name": data.name,
            "recurrence": data.recurrence,
            "day": data.day,
            "day2": data.day2,
            "month": data.month,
            "start_month": data.start_month,
            "end_month": data.end_month,
            "interval_days": data.interval_days,
            "manual_dates": [m.model_dump() for m in data.manual_dates],
            "amounts": dump_amounts(data.amounts),
            "auto_generate": data.auto_generate,
            "is_active": data.is_active,
        }


class PaydayTemplateService(_TemplateService):
    row_model = PaydayTemplateRow
    schema = PaydayTemplate
    label = "Payday template"

    def row_fields(self, data: PaydayTemplateIn) -> dict[str, object]:
        return {
            "name": data.name,
            "recurrence": data.recurrence,
            "day": data.day,
            "day2": data.day2,
            "month": data.month,
            "start_month": data.start_month,
            "end_month": data.end_month,
            "balances": dump_amounts(data.balances),
            "auto_generate": data.auto_generate,
            "is_active": data.is_active,
        }


class EntryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.strict_labels = get_settings().strict_month_labels

    def list_rows(self) -> list[EntryRow]:
        stmt = select(EntryRow).where(EntryRow.user_id == self.user_id)
        return list(self.session.scalars(stmt).all())

    def list_all(self) -> list[Entry]:
        return [entry_schema(row) for row in self.list_rows()]

    def get(self, entry_id: str) -> EntryRow:
        entry = self.session.get(EntryRow, entry_id)
        if not entry or entry.user_id != self.user_id:
            raise ValueError("Entry not found")
        return entry

    def _ensure_free(
        self, template_id: Optional[str], month: str, day: int, exclude_id=None
    ) -> None:
        if template_id is None:
            return
        stmt = select(EntryRow.id).where(
            EntryRow.user_id == self.user_id,
            EntryRow.template_id == template_id,
            EntryRow.month == month,
            EntryRow.date == day,
        )
        if exclude_id:
            stmt = stmt.where(EntryRow.id != exclude_id)
        if self.session.execute(stmt.limit(1)).scalar_one_or_none():
            raise ValueError("An entry for this template and date already exists")

    def _check_label(self, month: str) -> None:
        if self.strict_labels:
            validate_month_label(month)

    def _add(self, entry: Entry) -> Entry:
        self._check_label(entry.month)
        self._ensure_free(entry.template_id, entry.month, entry.date)
        row = entry_row(entry, self.user_id)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return entry_schema(row)

    def create_bill(self, data: BillIn) -> Bill:
        return self._add(Bill(id=new_id(), **data.model_dump()))

    def create_payday(self, data: PaydayIn) -> Payday:
        return self._add(Payday(id=new_id(), **data.model_dump()))

    def update(self, entry_id: str, data: Union[BillIn, PaydayIn]) -> Entry:
        row = self.get(entry_id)
        is_bill = row.type == EntryType.bill
        if is_bill != isinstance(data, BillIn):
            raise ValueError("Entry type cannot be changed")
        self._check_label(data.month)
        self._ensure_free(data.template_id, data.month, data.date, exclude_id=row.id)
        row.name = data.name
        row.date = data.date
        row.month = data.month
        row.template_id = data.template_id
        if is_bill:
            row.paid = data.paid
            row.amounts = dump_amounts(data.amounts)
        else:
            row.balances = dump_amounts(data.balances)
        self.session.commit()
        self.session.refresh(row)
        return entry_schema(row)

    def toggle_paid(self, entry_id: str) -> Bill:
        row = self.get(entry_id)
        if row.type != EntryType.bill:
            raise ValueError("Only bills can be marked paid")
        row.paid = not row.paid
        self.session.commit()
        self.session.refresh(row)
        return entry_schema(row)

    def _store_map(self, row: EntryRow, updated) -> Entry:
        if row.type == EntryType.bill:
            row.amounts = dump_amounts(updated)
        else:
            row.balances = dump_amounts(updated)
        self.session.commit()
        self.session.refresh(row)
        return entry_schema(row)

    def _current_map(self, row: EntryRow):
        raw = row.amounts if row.type == EntryType.bill else row.balances
        return normalize_amounts(raw)

    def set_account_amount(self, entry_id: str, account: str, value) -> Entry:
        """Set one account's amount (bills) or balance (paydays); zero or an
        unreadable value removes the key."""
        row = self.get(entry_id)
        return self._store_map(row, set_amount(self._current_map(row), account, value))

    def remove_account_amount(self, entry_id: str, account: str) -> Entry:
        row = self.get(entry_id)
        return self._store_map(row, remove_amount(self._current_map(row), account))

    def delete(self, entry_id: str) -> None:
        row = self.get(entry_id)
        self.session.delete(row)
        self.session.commit()


class CalendarService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.settings = get_settings()

    def projected(self) -> list[ProjectedEntry]:
        entries = EntryService(self.session, self.user_id).list_all()
        accounts = AccountService(self.session, self.user_id).list_schemas()
        ordered = sequence(entries, strict=self.settings.strict_month_labels)
        return project(ordered, accounts)

    def projected_entry(self, entry_id: str) -> ProjectedEntry:
        row = projection_index(self.projected()).get(entry_id)
        if row is None:
            raise ValueError("Entry not found")
        return row

    def visible(
        self, options: VisibilityOptions, today: Optional[date] = None
    ) -> list[ProjectedEntry]:
        today = today or local_today()
        return apply_visibility(self.projected(), options, today)

    def upcoming(
        self, options: VisibilityOptions, today: Optional[date] = None
    ) -> Optional[ProjectedEntry]:
        today = today or local_today()
        return first_upcoming(self.visible(options, today), today)


class AnalyticsService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def for_year(self, year: Optional[int] = None) -> list[BillAnalytics]:
        year = year or local_today().year
        templates = BillTemplateService(self.session, self.user_id).list_schemas()
        entries = EntryService(self.session, self.user_id).list_all()
        return calculate_bill_analytics(templates, entries, year)

    def changed(
        self, year: Optional[int] = None, dismissed: Optional[list[str]] = None
    ) -> list[BillAnalytics]:
        return changed_bills(self.for_year(year), dismissed)


class BackupService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def export(self) -> BackupFile:
        return BackupFile(
            entries=EntryService(self.session, self.user_id).list_all(),
            accounts=AccountService(self.session, self.user_id).list_schemas(),
            templates=BillTemplateService(self.session, self.user_id).list_schemas(),
            payday_templates=PaydayTemplateService(
                self.session, self.user_id
            ).list_schemas(),
        )

    def _delete_rows(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for key, model in (
            ("entries", EntryRow),
            ("accounts", AccountRow),
            ("templates", BillTemplateRow),
            ("paydayTemplates", PaydayTemplateRow),
        ):
            result = self.session.execute(
                delete(model).where(model.user_id == self.user_id)
            )
            counts[key] = result.rowcount
        self.session.flush()
        return counts

    def delete_all(self) -> dict[str, int]:
        counts = self._delete_rows()
        self.session.commit()
        logger.info(f"data_deleted: user={self.user_id} counts={counts}")
        return counts

    def import_data(self, data: BackupFile, *, replace: bool = False) -> dict[str, int]:
        check_backup(data)
        # One transaction: a failed import leaves replaced data in place.
        try:
            counts, skipped = self._import_rows(data, replace)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(
            f"backup_imported: user={self.user_id} counts={counts} skipped={skipped}"
        )
        return counts

    def _import_rows(
        self, data: BackupFile, replace: bool
    ) -> tuple[dict[str, int], int]:
        if replace:
            deleted = self._delete_rows()
            logger.info(f"data_replaced: user={self.user_id} counts={deleted}")
        data = reassign_ids(data)
        counts = {"entries": 0, "accounts": 0, "templates": 0, "paydayTemplates": 0}

        existing_names = {
            row.name.lower()
            for row in AccountService(self.session, self.user_id).list_all()
        }
        next_order = AccountService(self.session, self.user_id).next_order()
        for account in ordered_accounts(data.accounts or []):
            if account.name.lower() in existing_names:
                continue
            existing_names.add(account.name.lower())
            self.session.add(
                AccountRow(
                    id=account.id,
                    user_id=self.user_id,
                    name=account.name,
                    order=next_order,
                )
            )
            next_order += 1
            counts["accounts"] += 1

        bills = BillTemplateService(self.session, self.user_id)
        for template in data.templates or []:
            self.session.add(
                BillTemplateRow(
                    id=template.id, user_id=self.user_id, **bills.row_fields(template)
                )
            )
            counts["templates"] += 1
        paydays = PaydayTemplateService(self.session, self.user_id)
        for template in data.payday_templates or []:
            self.session.add(
                PaydayTemplateRow(
                    id=template.id, user_id=self.user_id, **paydays.row_fields(template)
                )
            )
            counts["paydayTemplates"] += 1

        taken = {
            natural_key(row)
            for row in EntryService(self.session, self.user_id).list_rows()
            if row.template_id is not None
        }
        skipped = 0
        for entry in data.entries or []:
            key = natural_key(entry)
            if entry.template_id is not None:
                if key in taken:
                    skipped += 1
                    continue
                taken.add(key)
            self.session.add(entry_row(entry, self.user_id))
            counts["entries"] += 1
        self.session.flush()
        return counts, skipped
