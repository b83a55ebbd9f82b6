"""Service layer for accounts: registration, credential checks and password changes."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

from models.user import ChangePasswordInput, LoginInput, RegisterInput, UserPublic
from services.expenses_service import to_object_id
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    return UserPublic(_id=str(doc["_id"]), fullname=doc["fullname"], email=doc["email"]).model_dump(by_alias=True)


async def register(collection: AsyncIOMotorCollection, data: RegisterInput) -> None:
    """Creates an account; ValueError if the email is already registered."""
    try:
        existing = await collection.find_one({"email": data.email})
    except Exception as e:
        logger.error(f"Database error looking up user {data.email}: {e}")
        raise ConnectionError(f"Database error registering user: {e}")
    if existing:
        logger.warning(f"Registration rejected, email already in use: {data.email}")
        raise ValueError("User already exists with this email.")

    now = datetime.now(timezone.utc)
    doc = {
        "fullname": data.fullname.strip(),
        "email": data.email,
        "password": hash_password(data.password),
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        await collection.insert_one(doc)
    except DuplicateKeyError:
        # Lost a race against a concurrent registration
        raise ValueError("User already exists with this email.")
    except Exception as e:
        logger.error(f"Database error inserting user {data.email}: {e}")
        raise ConnectionError(f"Database error registering user: {e}")
    logger.info(f"Registered user {data.email}.")


async def authenticate(collection: AsyncIOMotorCollection, data: LoginInput) -> Dict[str, Any]:
    """Returns the public user for valid credentials; PermissionError otherwise."""
    try:
        doc = await collection.find_one({"email": data.email})
    except Exception as e:
        logger.error(f"Database error looking up user {data.email}: {e}")
        raise ConnectionError(f"Database error during login: {e}")
    if not doc or not verify_password(data.password, doc.get("password", "")):
        logger.info(f"Failed login attempt for {data.email}.")
        raise PermissionError("Incorrect email or password.")
    return public_user(doc)


async def change_password(collection: AsyncIOMotorCollection, user_id: str, data: ChangePasswordInput) -> None:
    query = {"_id": to_object_id(user_id, "user")}
    try:
        doc = await collection.find_one(query)
    except Exception as e:
        logger.error(f"Database error loading user {user_id}: {e}")
        raise ConnectionError(f"Database error changing password: {e}")
    if not doc:
        raise LookupError("User not found.")
    if not verify_password(data.current_password, doc.get("password", "")):
        logger.info(f"Password change rejected for user {user_id}: wrong current password.")
        raise PermissionError("Current password is incorrect.")
    update = {"$set": {"password": hash_password(data.new_password), "updatedAt": datetime.now(timezone.utc)}}
    try:
        await collection.update_one(query, update)
    except Exception as e:
        logger.error(f"Database error updating password for {user_id}: {e}")
        raise ConnectionError(f"Database error changing password: {e}")
    logger.info(f"Password changed for user {user_id}.")
