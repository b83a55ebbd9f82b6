"""Service layer for handling expense-related logic."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection  # Type hint for collection
from pydantic import ValidationError

from models.expense import BackendExpense, ExpenseCreate, ExpenseUpdate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str, label: str = "expense") -> ObjectId:
    """Parses a path id, raising ValueError so routes can answer 400."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValueError(f"Invalid {label} id: {value}")


def serialize_expense(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Converts a stored document into its JSON wire shape."""
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    doc.pop("userId", None)
    return BackendExpense.model_validate(doc).model_dump(by_alias=True, mode="json")


# --- Database Interaction Functions (Depend on collection passed from route) ---

async def get_expenses(
    collection: AsyncIOMotorCollection,
    user_id: str,
    category: Optional[str] = None,
    done: Optional[bool] = None,
) -> List[Dict[str, Any]]:
    """Fetches the user's expenses, newest first, optionally filtered by category and done flag."""
    query: Dict[str, Any] = {"userId": to_object_id(user_id, "user")}
    if category:
        query["category"] = category
    if done is not None:
        query["done"] = done
    logger.info(f"Fetching expenses from collection '{collection.name}' with filter {query}...")
    expenses = []
    try:
        cursor = collection.find(query).sort("createdAt", -1)
        async for doc in cursor:
            try:
                expenses.append(serialize_expense(doc))
            except ValidationError as e:
                logger.error(f"Data validation error for document ID {doc.get('_id', 'N/A')}: {e}")
                # Skip invalid documents
                continue
        logger.info(f"Fetched {len(expenses)} expenses successfully.")
    except Exception as e:
        logger.error(f"Database error fetching expenses: {e}")
        raise ConnectionError(f"Database error fetching expenses: {e}")
    return expenses


async def add_expense(collection: AsyncIOMotorCollection, user_id: str, data: ExpenseCreate) -> Dict[str, Any]:
    """Inserts a new expense owned by the user and returns the stored record."""
    now = _utcnow()
    doc = data.model_dump()
    # MongoDB stores datetimes, not dates
    doc["date"] = datetime.combine(data.date, datetime.min.time())
    doc.update({
        "done": False,
        "userId": to_object_id(user_id, "user"),
        "createdAt": now,
        "updatedAt": now,
    })
    try:
        result = await collection.insert_one(doc)
    except Exception as e:
        logger.error(f"Database error inserting expense: {e}")
        raise ConnectionError(f"Database error adding expense: {e}")
    doc["_id"] = result.inserted_id
    logger.info(f"Added expense {result.inserted_id} for user {user_id}.")
    return serialize_expense(doc)


async def _update_owned(
    collection: AsyncIOMotorCollection, user_id: str, expense_id: str, fields: Dict[str, Any]
) -> None:
    """Applies $set to an expense the user owns; LookupError when there is no such expense."""
    query = {"_id": to_object_id(expense_id), "userId": to_object_id(user_id, "user")}
    fields = dict(fields, updatedAt=_utcnow())
    try:
        result = await collection.update_one(query, {"$set": fields})
    except Exception as e:
        logger.error(f"Database error updating expense {expense_id}: {e}")
        raise ConnectionError(f"Database error updating expense: {e}")
    if result.matched_count == 0:
        raise LookupError(f"Expense {expense_id} not found.")


async def update_expense(
    collection: AsyncIOMotorCollection, user_id: str, expense_id: str, data: ExpenseUpdate
) -> None:
    """Replaces only the fields present in the update."""
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise ValueError("No fields to update.")
    if "date" in fields:
        fields["date"] = datetime.combine(fields["date"], datetime.min.time())
    logger.info(f"Updating expense {expense_id} fields {sorted(fields)}.")
    await _update_owned(collection, user_id, expense_id, fields)


async def mark_as_done(collection: AsyncIOMotorCollection, user_id: str, expense_id: str, done: bool) -> None:
    logger.info(f"Marking expense {expense_id} done={done}.")
    await _update_owned(collection, user_id, expense_id, {"done": done})


async def remove_expense(collection: AsyncIOMotorCollection, user_id: str, expense_id: str) -> None:
    """Deletes one of the user's expenses."""
    query = {"_id": to_object_id(expense_id), "userId": to_object_id(user_id, "user")}
    try:
        result = await collection.delete_one(query)
    except Exception as e:
        logger.error(f"Database error deleting expense {expense_id}: {e}")
        raise ConnectionError(f"Database error deleting expense: {e}")
    if result.deleted_count == 0:
        raise LookupError(f"Expense {expense_id} not found.")
    logger.info(f"Removed expense {expense_id} for user {user_id}.")
