"""Pydantic models for expense data, on the wire and in the client view."""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class ExpenseCreate(BaseModel):
    """Body of POST /expense/add."""
    description: str
    amount: float = Field(..., ge=0)
    category: str
    date: dt.date
    notes: str = ""

    @field_validator("description", "category")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        return _strip_required(value)


class ExpenseUpdate(BaseModel):
    """Partial body of PUT /expense/update/{id}; unset fields are left untouched."""
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None

    @field_validator("description", "category")
    @classmethod
    def check_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _strip_required(value)


class DoneUpdate(BaseModel):
    done: bool


class BackendExpense(BaseModel):
    """
    An expense record as stored by the server and returned over the API.
    Field names follow the wire format (`_id`, `createdAt`, `updatedAt`).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    description: str
    amount: float
    category: str
    date: Optional[dt.datetime] = None
    notes: Optional[str] = None
    done: Optional[bool] = None
    created_at: Optional[dt.datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[dt.datetime] = Field(default=None, alias="updatedAt")


class ExpenseDraft(BaseModel):
    """An expense the user is about to add; the server assigns the id."""
    title: str
    amount: float = Field(..., ge=0)
    category: str
    date: dt.date
    description: Optional[str] = None


class Expense(BaseModel):
    """Client-side view of an expense."""
    id: str
    title: str
    amount: float
    category: str
    date: dt.date
    description: Optional[str] = None
