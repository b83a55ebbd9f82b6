"""Derives the working category list from observed expenses plus user-authored overrides."""
from typing import Dict, Iterable, List, Sequence

from models.category import DEFAULT_ICON, PALETTE, Category
from models.expense import Expense


def distinct_names(expenses: Iterable[Expense]) -> List[str]:
    """Category names in first-seen order."""
    seen: Dict[str, None] = {}
    for expense in expenses:
        seen.setdefault(expense.category, None)
    return list(seen)


def derive_from_expenses(expenses: Iterable[Expense], palette: Sequence[str] = PALETTE) -> List[Category]:
    return [
        Category(id=name, name=name, color=palette[index % len(palette)], icon=DEFAULT_ICON)
        for index, name in enumerate(distinct_names(expenses))
    ]


def merge_categories(derived: Iterable[Category], custom: Iterable[Category]) -> List[Category]:
    """Union by name; a custom entry replaces a derived one with the same name."""
    by_name: Dict[str, Category] = {}
    for category in derived:
        by_name[category.name] = category
    for category in custom:
        by_name[category.name] = category
    return list(by_name.values())


def derive_categories(
    expenses: Iterable[Expense],
    custom: Iterable[Category],
    palette: Sequence[str] = PALETTE,
) -> List[Category]:
    return merge_categories(derive_from_expenses(expenses, palette), custom)


def is_custom(category: Category) -> bool:
    return category.id != category.name or category.icon != DEFAULT_ICON


def custom_subset(categories: Iterable[Category]) -> List[Category]:
    return [c for c in categories if is_custom(c)]


def synthesize_category(name: str, existing: Sequence[Category], palette: Sequence[str] = PALETTE) -> Category:
    """A derived-provenance entry for a name first seen on a freshly added expense."""
    return Category(id=name, name=name, color=palette[len(existing) % len(palette)], icon=DEFAULT_ICON)
