"""Password hashing and signed session tokens for the API server."""
import logging
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings

logger = logging.getLogger(__name__)

SESSION_SALT = "expense-tracker-session"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed; rejecting credentials.")
        return False


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().secret_key, salt=SESSION_SALT)


def create_session_token(user_id: str) -> str:
    """Signs the user id into an opaque cookie value."""
    return _serializer().dumps({"uid": user_id})


def read_session_token(token: str, max_age: Optional[int] = None) -> Optional[str]:
    """Returns the user id carried by a session token, or None if it is invalid or expired."""
    if max_age is None:
        max_age = get_settings().session_max_age
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Session token expired.")
        return None
    except BadSignature:
        logger.warning("Session token has an invalid signature.")
        return None
    user_id = data.get("uid") if isinstance(data, dict) else None
    return user_id if isinstance(user_id, str) and user_id else None
