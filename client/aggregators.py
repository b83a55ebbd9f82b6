"""Read-side figures computed from a provider snapshot. Every function here is pure."""
import csv
import datetime as dt
import io
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from client.validation import FormValidationError
from models.category import FALLBACK_CHART_COLOR, Category
from models.expense import Expense

ALL_CATEGORIES = "all"
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
RECENT_LIMIT = 5


@dataclass(frozen=True)
class CategoryAmount:
    name: str
    amount: float


@dataclass(frozen=True)
class DashboardStats:
    total: float
    monthly_total: float
    highest_category: Optional[CategoryAmount]
    expense_count: int


@dataclass(frozen=True)
class ChartSlice:
    name: str
    value: float
    color: str


@dataclass(frozen=True)
class CategoryUsage:
    category: Category
    count: int
    total: float


@dataclass(frozen=True)
class BreakdownRow:
    name: str
    period1: float
    period2: float
    color: str


@dataclass(frozen=True)
class PeriodComparison:
    period1: List[Expense]
    period2: List[Expense]
    total1: float
    total2: float
    difference: float
    percent_change: float
    breakdown: List[BreakdownRow]


def total_amount(expenses: Iterable[Expense]) -> float:
    return sum(e.amount for e in expenses)


def category_totals_by_name(expenses: Iterable[Expense]) -> Dict[str, float]:
    """Totals keyed by category name, in first-encountered order."""
    totals: Dict[str, float] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, 0) + expense.amount
    return totals


def dashboard_stats(expenses: Sequence[Expense], today: Optional[dt.date] = None) -> DashboardStats:
    today = today or dt.date.today()
    monthly = [e for e in expenses if e.date.month == today.month and e.date.year == today.year]
    totals = category_totals_by_name(expenses)
    # sorted() is stable, so ties keep first-encountered order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    highest = CategoryAmount(*ranked[0]) if ranked else None
    return DashboardStats(
        total=total_amount(expenses),
        monthly_total=total_amount(monthly),
        highest_category=highest,
        expense_count=len(expenses),
    )


def monthly_totals(expenses: Iterable[Expense]) -> List[Dict[str, object]]:
    """Twelve Jan..Dec buckets keyed on the month alone, across all years."""
    amounts = [0.0] * 12
    for expense in expenses:
        amounts[expense.date.month - 1] += expense.amount
    return [{"name": label, "amount": amount} for label, amount in zip(MONTH_LABELS, amounts)]


def category_totals(expenses: Iterable[Expense], categories: Iterable[Category]) -> List[ChartSlice]:
    colors = {}
    for category in categories:
        colors.setdefault(category.name, category.color)
    return [
        ChartSlice(name=name, value=value, color=colors.get(name, FALLBACK_CHART_COLOR))
        for name, value in category_totals_by_name(expenses).items()
    ]


def recent_expenses(expenses: Sequence[Expense], limit: int = RECENT_LIMIT) -> List[Expense]:
    return list(expenses[:limit])


def category_usage(expenses: Sequence[Expense], categories: Iterable[Category]) -> List[CategoryUsage]:
    usage = []
    for category in categories:
        matching = [e for e in expenses if e.category == category.name]
        usage.append(CategoryUsage(category=category, count=len(matching), total=total_amount(matching)))
    return usage


def filter_expenses(expenses: Iterable[Expense], search: str = "",
                    category: str = ALL_CATEGORIES) -> List[Expense]:
    """Case-insensitive substring match on title or description, within one category or all."""
    needle = (search or "").lower()
    result = []
    for expense in expenses:
        matches_search = needle in expense.title.lower() or (
            expense.description is not None and needle in expense.description.lower()
        )
        matches_category = category == ALL_CATEGORIES or expense.category == category
        if matches_search and matches_category:
            result.append(expense)
    return result


def expenses_in_range(expenses: Iterable[Expense], start: Optional[dt.date], end: Optional[dt.date],
                      category: str = ALL_CATEGORIES) -> List[Expense]:
    """Expenses dated within [start, end]; an unset endpoint yields nothing."""
    if start is None or end is None:
        return []
    return [
        e for e in expenses
        if start <= e.date <= end and (category == ALL_CATEGORIES or e.category == category)
    ]


def percent_change(total1: float, total2: float) -> float:
    if total1 == 0:
        return 0.0
    return (total2 - total1) / total1 * 100


def compare_periods(
    expenses: Sequence[Expense],
    categories: Sequence[Category],
    period1: tuple,
    period2: tuple,
    category: str = ALL_CATEGORIES,
) -> PeriodComparison:
    """period1/period2 are (start, end) pairs; either endpoint may be None."""
    bucket1 = expenses_in_range(expenses, period1[0], period1[1], category)
    bucket2 = expenses_in_range(expenses, period2[0], period2[1], category)
    total1 = total_amount(bucket1)
    total2 = total_amount(bucket2)

    selected = categories if category == ALL_CATEGORIES else [c for c in categories if c.name == category]
    breakdown = []
    for cat in selected:
        p1 = total_amount(e for e in bucket1 if e.category == cat.name)
        p2 = total_amount(e for e in bucket2 if e.category == cat.name)
        if p1 > 0 or p2 > 0:
            breakdown.append(BreakdownRow(name=cat.name, period1=p1, period2=p2, color=cat.color))

    return PeriodComparison(
        period1=bucket1,
        period2=bucket2,
        total1=total1,
        total2=total2,
        difference=total2 - total1,
        percent_change=percent_change(total1, total2),
        breakdown=breakdown,
    )


def export_csv(expenses: Sequence[Expense]) -> str:
    if not expenses:
        raise FormValidationError("No expenses to export")
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(["Title", "Amount", "Category", "Date", "Description"])
    for expense in expenses:
        writer.writerow([
            expense.title,
            expense.amount,
            expense.category,
            expense.date.isoformat(),
            expense.description or "",
        ])
    return buffer.getvalue()
