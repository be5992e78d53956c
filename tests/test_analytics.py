from decimal import Decimal

from analytics import (
    ChangeType,
    analyze_template,
    calculate_bill_analytics,
    changed_bills,
    template_entries,
    year_markers,
)
from models import RecurrenceType
from schemas import AnalyticsOut, Bill, BillTemplate, Payday


def template(id="rent", name="Rent", amount="120"):
    return BillTemplate(
        id=id,
        name=name,
        recurrence=RecurrenceType.monthly,
        day=1,
        amounts={"Checking": amount},
    )


def bill(id, month, amount, paid=True, template_id="rent", name="Rent"):
    return Bill(
        id=id,
        name=name,
        month=month,
        date=1,
        paid=paid,
        template_id=template_id,
        amounts={"Checking": amount},
    )


def test_increase_against_average_paid():
    entries = [
        bill("jan", "Jan '26", 100),
        bill("feb", "Feb '26", 100),
        bill("mar", "Mar '26", 120, paid=False),
    ]
    result = analyze_template(template(), entries, 2026)

    assert result.paid_count == 2
    assert result.planned_count == 3
    assert result.ytd_paid == Decimal("200")
    assert result.ytd_planned == Decimal("360")
    assert result.average_paid_amount == Decimal("100")
    assert result.current_amount == Decimal("120")
    assert result.has_change is True
    assert result.change_type == ChangeType.increase
    assert result.change_amount == Decimal("20")
    assert result.change_percentage == Decimal("20")


def test_decrease_is_negative():
    result = analyze_template(template(amount="90"), [bill("jan", "Jan '26", 120)], 2026)
    assert result.change_type == ChangeType.decrease
    assert result.change_amount == Decimal("-30")
    assert result.change_percentage == Decimal("-25")


def test_one_cent_threshold():
    within = analyze_template(template(amount="100.01"), [bill("a", "Jan '26", 100)], 2026)
    beyond = analyze_template(template(amount="100.02"), [bill("a", "Jan '26", 100)], 2026)

    assert within.has_change is False
    assert within.change_type == ChangeType.none
    assert within.change_amount == Decimal("0")
    assert beyond.has_change is True


def test_no_paid_history_means_no_change():
    result = analyze_template(template(), [bill("a", "Jan '26", 50, paid=False)], 2026)
    assert result.paid_count == 0
    assert result.average_paid_amount == Decimal("0")
    assert result.has_change is False


def test_name_fallback_only_for_unlinked_bills():
    entries = [
        bill("linked", "Jan '26", 100),
        bill("legacy", "Feb '26", 100, template_id=None),
        bill("other-template", "Mar '26", 100, template_id="water"),
        bill("other-name", "Apr '26", 100, template_id=None, name="Water"),
        Payday(id="pay", name="Rent", month="Jan '26", date=1),
    ]
    matched = template_entries(template(), entries, 2026)
    assert [b.id for b in matched] == ["linked", "legacy"]


def test_year_markers_match_label_forms():
    assert year_markers(2026) == ("'26", " 26", "2026")
    entries = [
        bill("apostrophe", "Jan '26", 100),
        bill("space", "Feb 26", 100),
        bill("full", "Mar 2026", 100),
        bill("other", "Apr '25", 100),
    ]
    matched = template_entries(template(), entries, 2026)
    assert [b.id for b in matched] == ["apostrophe", "space", "full"]


def test_changed_bills_skips_dismissed():
    templates = [template(), template(id="water", name="Water", amount="40")]
    entries = [
        bill("rent-jan", "Jan '26", 100),
        bill("water-jan", "Jan '26", 30, template_id="water", name="Water"),
    ]
    analytics = calculate_bill_analytics(templates, entries, 2026)

    assert [row.template_id for row in analytics] == ["rent", "water"]
    assert [row.template_id for row in changed_bills(analytics)] == ["rent", "water"]
    assert [row.template_id for row in changed_bills(analytics, ["rent"])] == ["water"]


def test_analytics_row_serialises_with_camel_case_names():
    entries = [bill("jan", "Jan '26", 100), bill("feb", "Feb '26", 120, paid=False)]
    result = analyze_template(template(), entries, 2026)

    data = AnalyticsOut.model_validate(result).model_dump(mode="json", by_alias=True)
    assert data["templateId"] == "rent"
    assert data["changeType"] == "increase"
    assert data["paidCount"] == 1
    assert data["hasChange"] is True
    assert Decimal(data["ytdPaid"]) == Decimal("100")
    assert Decimal(data["changeAmount"]) == Decimal("20")
