"""Shared slowapi limiter; routes decorate with it and main.py registers its handler."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import get_settings

# In-memory storage (no storage_uri)
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)
AUTH_RATE_LIMIT = get_settings().auth_rate_limit
