"""Environment-driven settings shared by the API server and the client."""
import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()  # Searches current dir and parents for .env


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(
        self,
        mongodb_uri: Optional[str],
        db_name: str,
        secret_key: str,
        cors_origins: List[str],
        cookie_name: str,
        cookie_secure: bool,
        session_max_age: int,
        auth_rate_limit: str,
        rate_limit_enabled: bool,
        api_url: str,
    ) -> None:
        self.mongodb_uri = mongodb_uri
        self.db_name = db_name
        self.secret_key = secret_key
        self.cors_origins = cors_origins
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self.session_max_age = session_max_age
        self.auth_rate_limit = auth_rate_limit
        self.rate_limit_enabled = rate_limit_enabled
        self.api_url = api_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5175")
    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI"),
        db_name=os.getenv("DB_NAME", "expense_tracker"),
        secret_key=os.getenv("SECRET_KEY", "change-me-in-production"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        cookie_name=os.getenv("SESSION_COOKIE_NAME", "token"),
        cookie_secure=_as_bool(os.getenv("COOKIE_SECURE"), False),
        session_max_age=int(os.getenv("SESSION_MAX_AGE", str(24 * 60 * 60))),
        auth_rate_limit=os.getenv("AUTH_RATE_LIMIT", "15/minute"),
        rate_limit_enabled=_as_bool(os.getenv("RATE_LIMIT_ENABLED"), True),
        api_url=os.getenv("EXPENSE_TRACKER_API_URL", "http://localhost:3000/api/v1"),
    )
