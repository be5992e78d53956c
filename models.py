import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class EntryType(str, Enum):
    bill = "bill"
    payday = "payday"


class ChangeType(str, Enum):
    increase = "increase"
    decrease = "decrease"
    none = "none"


class RecurrenceType(str, Enum):
    weekly = "weekly"
    bi_weekly = "bi-weekly"
    semi_monthly = "semi-monthly"
    monthly = "monthly"
    yearly = "yearly"
    custom_interval = "custom-interval"
    manual = "manual"
    one_time = "one-time"


RECURRENCE_ENUM = SAEnum(
    RecurrenceType,
    name="recurrencetype",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_accounts_user_order", "user_id", "order"),)


class TemplateMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    recurrence: Mapped[RecurrenceType] = mapped_column(RECURRENCE_ENUM, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    day2: Mapped[Optional[int]] = mapped_column(Integer)
    month: Mapped[Optional[str]] = mapped_column(String(3))
    start_month: Mapped[Optional[str]] = mapped_column(String(3))
    end_month: Mapped[Optional[str]] = mapped_column(String(3))
    auto_generate: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BillTemplate(Base, TemplateMixin, TimestampMixin):
    __tablename__ = "bill_templates"

    interval_days: Mapped[Optional[int]] = mapped_column(Integer)
    # [{"month": "Jan", "day": 5}, ...]
    manual_dates: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # account name -> decimal string
    amounts: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        CheckConstraint("day >= 1 AND day <= 31", name="ck_bill_template_day"),
        CheckConstraint(
            "interval_days IS NULL OR interval_days > 0",
            name="ck_bill_template_interval_positive",
        ),
        Index("ix_bill_templates_user", "user_id"),
    )


class PaydayTemplate(Base, TemplateMixin, TimestampMixin):
    __tablename__ = "payday_templates"

    balances: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        CheckConstraint("day >= 1 AND day <= 31", name="ck_payday_template_day"),
        Index("ix_payday_templates_user", "user_id"),
    )


class Entry(Base, TimestampMixin):
    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Points at a bill or payday template depending on type; no FK so that
    # paid entries survive their template.
    template_id: Mapped[Optional[str]] = mapped_column(String(36))
    type: Mapped[EntryType] = mapped_column(SAEnum(EntryType), nullable=False)
    date: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    amounts: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    balances: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "template_id",
            "month",
            "date",
            name="uq_entry_template_occurrence",
        ),
        Index("ix_entries_user_template", "user_id", "template_id"),
        Index("ix_entries_user_month", "user_id", "month"),
    )
