import datetime as dt

import pytest

from client.aggregators import (
    category_totals,
    category_usage,
    compare_periods,
    dashboard_stats,
    export_csv,
    filter_expenses,
    monthly_totals,
    percent_change,
    recent_expenses,
)
from client.validation import FormValidationError
from models.category import FALLBACK_CHART_COLOR, PALETTE, Category
from models.expense import Expense


def make_expense(idx, category, amount, date=dt.date(2025, 1, 10), title=None, description=None):
    return Expense(
        id=f"e{idx}",
        title=title or f"Expense {idx}",
        amount=amount,
        category=category,
        date=date,
        description=description,
    )


def test_dashboard_totals_and_highest_category():
    expenses = [make_expense(1, "Food", 10), make_expense(2, "Food", 5), make_expense(3, "Rent", 900)]
    stats = dashboard_stats(expenses, today=dt.date(2025, 3, 1))
    assert stats.total == 915
    assert stats.highest_category.name == "Rent"
    assert stats.highest_category.amount == 900
    assert stats.expense_count == 3


def test_dashboard_month_to_date_uses_month_and_year():
    expenses = [
        make_expense(1, "Food", 10, date=dt.date(2025, 3, 2)),
        make_expense(2, "Food", 20, date=dt.date(2024, 3, 2)),
        make_expense(3, "Food", 40, date=dt.date(2025, 2, 28)),
    ]
    assert dashboard_stats(expenses, today=dt.date(2025, 3, 15)).monthly_total == 10


def test_highest_category_tie_keeps_first_encountered():
    expenses = [make_expense(1, "Food", 50), make_expense(2, "Fun", 50)]
    assert dashboard_stats(expenses).highest_category.name == "Food"


def test_dashboard_empty():
    stats = dashboard_stats([])
    assert stats.total == 0
    assert stats.highest_category is None


def test_filter_is_case_insensitive_on_title():
    expenses = [make_expense(1, "Food", 30, title="Grocery run"), make_expense(2, "Fun", 12, title="Cinema")]
    result = filter_expenses(expenses, search="gro")
    assert [e.id for e in result] == ["e1"]


def test_filter_matches_description_too():
    expenses = [make_expense(1, "Food", 30, title="Lunch", description="With GROUP")]
    assert len(filter_expenses(expenses, search="grou")) == 1


def test_filter_with_category_and_no_match_is_empty():
    expenses = [make_expense(1, "Food", 30, title="Grocery run")]
    result = filter_expenses(expenses, search="zz", category="Food")
    assert result == []
    assert sum(e.amount for e in result) == 0


def test_filter_category_is_exact():
    expenses = [make_expense(1, "Food", 30), make_expense(2, "Foods", 5)]
    assert [e.id for e in filter_expenses(expenses, category="Food")] == ["e1"]
    assert len(filter_expenses(expenses, category="all")) == 2


def test_compare_periods_difference_and_percent():
    expenses = [
        make_expense(1, "Food", 120, date=dt.date(2025, 1, 1)),
        make_expense(2, "Rent", 80, date=dt.date(2025, 1, 31)),
        make_expense(3, "Food", 150, date=dt.date(2025, 2, 28)),
        make_expense(4, "Food", 999, date=dt.date(2025, 3, 1)),
    ]
    categories = [Category(id="Food", name="Food", color=PALETTE[0]), Category(id="Rent", name="Rent", color=PALETTE[1])]
    result = compare_periods(
        expenses,
        categories,
        (dt.date(2025, 1, 1), dt.date(2025, 1, 31)),
        (dt.date(2025, 2, 1), dt.date(2025, 2, 28)),
    )
    assert result.total1 == 200
    assert result.total2 == 150
    assert result.difference == -50
    assert result.percent_change == pytest.approx(-25.0)
    assert [(row.name, row.period1, row.period2) for row in result.breakdown] == [("Food", 120, 150), ("Rent", 80, 0)]


def test_percent_change_is_zero_when_first_period_empty():
    assert percent_change(0, 500) == 0
    expenses = [make_expense(1, "Food", 30, date=dt.date(2025, 2, 2))]
    result = compare_periods(expenses, [], (dt.date(2025, 1, 1), dt.date(2025, 1, 31)),
                             (dt.date(2025, 2, 1), dt.date(2025, 2, 28)))
    assert result.total1 == 0
    assert result.percent_change == 0


def test_unset_range_endpoint_yields_empty_bucket():
    expenses = [make_expense(1, "Food", 30)]
    result = compare_periods(expenses, [], (None, dt.date(2025, 12, 31)), (dt.date(2025, 1, 1), None))
    assert result.period1 == [] and result.period2 == []


def test_compare_periods_respects_category_filter():
    expenses = [make_expense(1, "Food", 30), make_expense(2, "Rent", 70)]
    categories = [Category(id="Food", name="Food", color=PALETTE[0]), Category(id="Rent", name="Rent", color=PALETTE[1])]
    span = (dt.date(2025, 1, 1), dt.date(2025, 1, 31))
    result = compare_periods(expenses, categories, span, span, category="Rent")
    assert result.total1 == 70
    assert [row.name for row in result.breakdown] == ["Rent"]


def test_monthly_totals_bucket_by_month():
    expenses = [
        make_expense(1, "Food", 10, date=dt.date(2025, 1, 3)),
        make_expense(2, "Food", 5, date=dt.date(2024, 1, 20)),
        make_expense(3, "Food", 7, date=dt.date(2025, 12, 1)),
    ]
    data = monthly_totals(expenses)
    assert len(data) == 12
    assert data[0] == {"name": "Jan", "amount": 15}
    assert data[11]["amount"] == 7


def test_category_totals_use_entity_color_or_fallback():
    expenses = [make_expense(1, "Food", 10), make_expense(2, "Ghost", 3)]
    categories = [Category(id="Food", name="Food", color=PALETTE[2])]
    slices = {s.name: s for s in category_totals(expenses, categories)}
    assert slices["Food"].color == PALETTE[2]
    assert slices["Ghost"].color == FALLBACK_CHART_COLOR


def test_category_usage_and_recent():
    expenses = [make_expense(i, "Food", 1) for i in range(7)]
    usage = category_usage(expenses, [Category(id="Food", name="Food", color=PALETTE[0])])
    assert usage[0].count == 7 and usage[0].total == 7
    assert [e.id for e in recent_expenses(expenses)] == ["e0", "e1", "e2", "e3", "e4"]


def test_export_csv():
    expenses = [make_expense(1, "Food", 12.5, title='Tea "green"', description="shop")]
    text = export_csv(expenses)
    lines = text.strip().split("\n")
    assert lines[0] == '"Title","Amount","Category","Date","Description"'
    assert lines[1] == '"Tea ""green""",12.5,"Food","2025-01-10","shop"'


def test_export_csv_requires_expenses():
    with pytest.raises(FormValidationError):
        export_csv([])
