import itertools
import math
from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from models import Entry as EntryRow, RecurrenceType
from recurrence import (
    TemplateSyncEngine,
    entry_row,
    expand_templates,
    interval_days,
    missing_entries,
    natural_key,
    occurrence_dates,
)
from schemas import BillTemplate, ManualDate, PaydayTemplate


def _bill(recurrence: RecurrenceType, **overrides) -> BillTemplate:
    fields = dict(
        id="tpl-1",
        name="Rent",
        recurrence=recurrence,
        day=1,
        amounts={"Checking": 1000},
    )
    fields.update(overrides)
    return BillTemplate(**fields)


def _counter():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


def test_monthly_rent_in_window():
    template = _bill(RecurrenceType.monthly, start_month="Jan", end_month="Mar")
    entries = expand_templates([template], [], 2026)

    assert [(e.month, e.date) for e in entries] == [
        ("Jan '26", 1),
        ("Feb '26", 1),
        ("Mar '26", 1),
    ]
    for entry in entries:
        assert entry.type == "bill"
        assert entry.paid is False
        assert entry.template_id == "tpl-1"
        assert entry.amounts == {"Checking": Decimal("1000")}
    assert len({e.id for e in entries}) == 3


def test_monthly_keeps_day_verbatim():
    template = _bill(RecurrenceType.monthly, day=31, start_month="Feb", end_month="Feb")
    assert occurrence_dates(template, 2026) == [("Feb", 31)]


def test_yearly_outside_own_window_is_dropped():
    inside = _bill(RecurrenceType.yearly, month="Jun", day=15)
    outside = _bill(RecurrenceType.yearly, month="Jun", start_month="Jul")

    assert occurrence_dates(inside, 2026) == [("Jun", 15)]
    assert occurrence_dates(outside, 2026) == []


def test_one_time_defaults_to_january():
    template = _bill(RecurrenceType.one_time, day=9)
    assert occurrence_dates(template, 2026) == [("Jan", 9)]


def test_semi_monthly_emits_both_days():
    template = _bill(
        RecurrenceType.semi_monthly, day=1, day2=15, start_month="Nov"
    )
    assert occurrence_dates(template, 2026) == [
        ("Nov", 1),
        ("Nov", 15),
        ("Dec", 1),
        ("Dec", 15),
    ]


def test_semi_monthly_without_second_day():
    template = _bill(RecurrenceType.semi_monthly, day=5, start_month="Dec")
    assert occurrence_dates(template, 2026) == [("Dec", 5)]


def test_manual_dates_filtered_by_window():
    template = _bill(
        RecurrenceType.manual,
        start_month="Mar",
        end_month="Sep",
        manual_dates=[
            ManualDate(month="Feb", day=3),
            ManualDate(month="Apr", day=10),
            ManualDate(month="Sep", day=30),
            ManualDate(month="Oct", day=1),
        ],
    )
    assert occurrence_dates(template, 2026) == [("Apr", 10), ("Sep", 30)]


def test_bi_weekly_walks_the_whole_year():
    template = _bill(RecurrenceType.bi_weekly, day=2)
    dates = occurrence_dates(template, 2026)

    assert len(dates) == 26
    assert dates[0] == ("Jan", 2)
    assert dates[1] == ("Jan", 16)
    assert dates[-1] == ("Dec", 18)


def test_interval_window_bounds_emitted_months():
    template = _bill(
        RecurrenceType.bi_weekly, day=1, start_month="Mar", end_month="Apr"
    )
    assert occurrence_dates(template, 2026) == [
        ("Mar", 1),
        ("Mar", 15),
        ("Mar", 29),
        ("Apr", 12),
        ("Apr", 26),
    ]


def test_interval_seed_rolls_over_short_month():
    template = _bill(RecurrenceType.weekly, day=30, start_month="Feb")
    assert occurrence_dates(template, 2026)[0] == ("Mar", 2)


def test_custom_interval_defaults_to_thirty_days():
    template = _bill(RecurrenceType.custom_interval, day=1)
    dates = occurrence_dates(template, 2026)

    assert interval_days(template) == 30
    assert dates[:3] == [("Jan", 1), ("Jan", 31), ("Mar", 2)]
    assert len(dates) == 13


def test_interval_occurrences_are_bounded():
    for recurrence, extra in (
        (RecurrenceType.weekly, {}),
        (RecurrenceType.bi_weekly, {}),
        (RecurrenceType.custom_interval, {"interval_days": 3}),
        (RecurrenceType.custom_interval, {"interval_days": 400}),
    ):
        template = _bill(recurrence, day=1, **extra)
        step = interval_days(template)
        dates = occurrence_dates(template, 2024)
        assert 0 < len(dates) <= math.ceil(366 / step) + 1


def test_weekly_in_leap_year():
    template = _bill(RecurrenceType.weekly, day=1)
    dates = occurrence_dates(template, 2024)
    assert len(dates) == 53
    assert dates[-1] == ("Dec", 30)


def test_inactive_and_manual_only_templates_are_skipped():
    inactive = _bill(RecurrenceType.monthly, is_active=False)
    manual_only = _bill(RecurrenceType.monthly, auto_generate=False)
    assert expand_templates([inactive, manual_only], [], 2026) == []


def test_payday_templates_produce_paydays():
    payday = PaydayTemplate(
        id="pay-1",
        name="Salary",
        recurrence=RecurrenceType.semi_monthly,
        day=1,
        day2=15,
        start_month="Jan",
        end_month="Jan",
        balances={"Checking": "2000.00", "Savings": 0},
    )
    entries = expand_templates([], [payday], 2026, id_factory=_counter())

    assert [e.id for e in entries] == ["id-1", "id-2"]
    assert all(e.type == "payday" for e in entries)
    assert entries[0].balances == {"Checking": Decimal("2000.00")}


def test_window_containment_for_every_recurrence():
    for recurrence in RecurrenceType:
        template = _bill(
            recurrence,
            day=28,
            day2=14,
            month="May",
            start_month="Apr",
            end_month="Aug",
            interval_days=9,
            manual_dates=[ManualDate(month="Jan", day=1), ManualDate(month="May", day=2)],
        )
        for month, _day in occurrence_dates(template, 2026):
            assert month in {"Apr", "May", "Jun", "Jul", "Aug"}


def test_expansion_is_idempotent_under_natural_key_dedupe():
    template = _bill(RecurrenceType.bi_weekly, day=3)
    first = expand_templates([template], [], 2026)
    second = expand_templates([template], [], 2026)

    assert missing_entries(second, first) == []
    merged = first + missing_entries(second, first)
    assert {natural_key(e) for e in merged} == {natural_key(e) for e in first}


def test_missing_entries_dedupes_within_batch():
    template = _bill(RecurrenceType.semi_monthly, day=10, day2=10, start_month="Dec")
    generated = expand_templates([template], [], 2026)
    assert len(generated) == 2
    assert len(missing_entries(generated, [])) == 1


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_sync_engine_is_idempotent():
    template = _bill(RecurrenceType.monthly, start_month="Jan", end_month="Jun")
    with _session() as session:
        engine = TemplateSyncEngine(session)
        assert engine.sync_template(template, 2026) == 6
        assert engine.sync_template(template, 2026) == 0
        session.commit()

        count = session.query(EntryRow).filter(EntryRow.template_id == "tpl-1").count()
        assert count == 6


def test_sync_engine_fills_gaps_only():
    template = _bill(RecurrenceType.monthly, start_month="Jan", end_month="Mar")
    with _session() as session:
        engine = TemplateSyncEngine(session)
        engine.sync_template(template, 2026)
        feb = session.scalars(
            select(EntryRow).where(EntryRow.month == "Feb '26")
        ).one()
        session.delete(feb)
        session.flush()

        widened = template.model_copy(update={"end_month": "Apr"})
        assert engine.sync_template(widened, 2026) == 2
        months = sorted(row.month for row in session.scalars(select(EntryRow)))
        assert months == ["Apr '26", "Feb '26", "Jan '26", "Mar '26"]


def test_remove_unpaid_keeps_paid_history():
    template = _bill(RecurrenceType.monthly, start_month="Jan", end_month="Mar")
    with _session() as session:
        engine = TemplateSyncEngine(session)
        engine.sync_template(template, 2026)
        jan = session.scalars(
            select(EntryRow).where(EntryRow.month == "Jan '26")
        ).one()
        jan.paid = True
        session.flush()

        assert engine.remove_unpaid("tpl-1") == 2
        remaining = session.scalars(select(EntryRow)).all()
        assert [(row.month, row.paid) for row in remaining] == [("Jan '26", True)]


def test_entry_row_stores_amounts_as_strings():
    template = _bill(RecurrenceType.one_time, amounts={"Checking": "12.50"})
    entry = expand_templates([template], [], 2026)[0]
    row = entry_row(entry, user_id=7)
    assert row.user_id == 7
    assert row.amounts == {"Checking": "12.50"}
    assert row.balances == {}
