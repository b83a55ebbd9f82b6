"""Form checks that run before any remote call is attempted."""
import datetime as dt
import math
from typing import Optional

from models.expense import ExpenseDraft

MIN_SIGNUP_PASSWORD = 8
MIN_CHANGED_PASSWORD = 6


class FormValidationError(ValueError):
    """A user-facing notice for an incomplete or inconsistent form."""


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def parse_amount(raw) -> float:
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        raise FormValidationError("Amount must be a number")
    if math.isnan(amount) or amount < 0:
        raise FormValidationError("Amount must be a non-negative number")
    return amount


def validate_expense_form(title: str, amount, category: str, date=None, description: Optional[str] = None,
                          currency: str = "USD", usd_to_inr: Optional[float] = None) -> ExpenseDraft:
    """
    Builds an ExpenseDraft from raw form input. Amounts entered in INR are
    converted to USD, which is the base unit the server stores.
    """
    if _blank(title) or _blank(amount) or _blank(category):
        raise FormValidationError("Please fill in all required fields")
    value = parse_amount(amount)
    if currency == "INR":
        if not usd_to_inr:
            raise FormValidationError("No exchange rate available for INR input")
        value = value / usd_to_inr
    elif currency != "USD":
        raise FormValidationError(f"Unsupported currency: {currency}")

    if date is None or date == "":
        date = dt.date.today()
    elif isinstance(date, str):
        try:
            date = dt.date.fromisoformat(date)
        except ValueError:
            raise FormValidationError("Date must be in YYYY-MM-DD format")

    return ExpenseDraft(
        title=title.strip(),
        amount=value,
        category=category.strip(),
        date=date,
        description=description.strip() if description and description.strip() else None,
    )


def validate_category_form(name: str) -> str:
    if _blank(name):
        raise FormValidationError("Please enter a category name")
    return name.strip()


def validate_login_form(email: str, password: str) -> None:
    if _blank(email) or _blank(password):
        raise FormValidationError("Please fill in all fields")


def validate_signup_form(name: str, email: str, password: str, confirm_password: str) -> None:
    if _blank(name) or _blank(email) or _blank(password) or _blank(confirm_password):
        raise FormValidationError("Please fill in all fields")
    if password != confirm_password:
        raise FormValidationError("Passwords do not match")
    if len(password) < MIN_SIGNUP_PASSWORD:
        raise FormValidationError(f"Password must be at least {MIN_SIGNUP_PASSWORD} characters")


def validate_password_change(current_password: str, new_password: str, confirm_password: str) -> None:
    if _blank(current_password) or _blank(new_password) or _blank(confirm_password):
        raise FormValidationError("Please fill in all password fields")
    if new_password != confirm_password:
        raise FormValidationError("New passwords do not match")
    if len(new_password) < MIN_CHANGED_PASSWORD:
        raise FormValidationError(f"Password must be at least {MIN_CHANGED_PASSWORD} characters")
