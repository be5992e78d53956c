from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from amounts import normalize_amounts
from models import ChangeType, RecurrenceType


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AccountIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Account name must not be blank")
        return value


class Account(CamelModel):
    id: str
    name: str
    order: int = 0


class AccountReorderIn(CamelModel):
    ids: list[str] = Field(..., min_length=1)


class ManualDate(CamelModel):
    month: str
    day: int = Field(..., ge=1, le=31)


class _TemplateFields(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    recurrence: RecurrenceType
    day: int = Field(..., ge=1, le=31)
    day2: Optional[int] = Field(default=None, ge=1, le=31)
    month: Optional[str] = None
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    auto_generate: bool = True
    is_active: bool = True


class BillTemplateIn(_TemplateFields):
    interval_days: Optional[int] = Field(default=None, gt=0)
    manual_dates: list[ManualDate] = Field(default_factory=list)
    amounts: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("amounts", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_amounts(value)


class BillTemplate(BillTemplateIn):
    id: str


class PaydayTemplateIn(_TemplateFields):
    balances: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("balances", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_amounts(value)

    @field_validator("recurrence")
    @classmethod
    def _no_manual_dates(cls, value: RecurrenceType) -> RecurrenceType:
        if value == RecurrenceType.manual:
            raise ValueError("Payday templates do not support manual dates")
        return value


class PaydayTemplate(PaydayTemplateIn):
    id: str


class BillIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    date: int = Field(..., ge=1, le=31)
    month: str = Field(..., min_length=1, max_length=16)
    paid: bool = False
    template_id: Optional[str] = None
    amounts: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("amounts", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_amounts(value)


class PaydayIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    date: int = Field(..., ge=1, le=31)
    month: str = Field(..., min_length=1, max_length=16)
    template_id: Optional[str] = None
    balances: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("balances", mode="before")
    @classmethod
    def _normalize(cls, value):
        return normalize_amounts(value)


class Bill(BillIn):
    id: str
    type: Literal["bill"] = "bill"


class Payday(PaydayIn):
    id: str
    type: Literal["payday"] = "payday"


Entry = Annotated[Union[Bill, Payday], Field(discriminator="type")]


class BackupFile(CamelModel):
    entries: Optional[list[Entry]] = None
    accounts: Optional[list[Account]] = None
    templates: Optional[list[BillTemplate]] = None
    payday_templates: Optional[list[PaydayTemplate]] = None


class DismissChangesIn(CamelModel):
    template_ids: list[str] = Field(default_factory=list)


class AccountAmountIn(CamelModel):
    amount: Optional[Decimal] = None


class AnalyticsOut(CamelModel):
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
