"""
Local key-value persistence for the client.

Holds the cached identity, each identity's custom categories and the last
currency rate. Values are JSON-compatible. The store is injected wherever it
is needed instead of being reached through a module global.
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.category import Category
from models.user import Identity

logger = logging.getLogger(__name__)

USER_KEY = "expense_tracker_user"
CATEGORIES_KEY_PREFIX = "expense_tracker_categories_"
CURRENCY_KEY = "currency_rates"


def categories_key(identity_id: str) -> str:
    return f"{CATEGORIES_KEY_PREFIX}{identity_id}"


class PreferenceStore(ABC):
    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        # Round-trip through JSON so callers never share mutable state with the store
        return json.loads(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFilePreferenceStore(PreferenceStore):
    """Persists every key in a single JSON document, rewritten atomically on each change."""

    def __init__(self, path):
        self.path = Path(path)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preference file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preference file {self.path}: expected a JSON object.")
            return {}
        return data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(json.dumps(self._data[key]))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value))
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def clear(self) -> None:
        self._data = {}
        self._flush()


# --- Typed accessors ---

def load_identity(store: PreferenceStore) -> Optional[Identity]:
    raw = store.get(USER_KEY)
    if raw is None:
        return None
    try:
        return Identity.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Discarding malformed cached identity: {e}")
        store.remove(USER_KEY)
        return None


def save_identity(store: PreferenceStore, identity: Identity) -> None:
    store.set(USER_KEY, identity.model_dump())


def clear_identity(store: PreferenceStore) -> None:
    store.remove(USER_KEY)


def load_custom_categories(store: PreferenceStore, identity_id: Optional[str]) -> List[Category]:
    """Custom categories stored for an identity; empty when there is no identity or nothing stored."""
    if not identity_id:
        return []
    raw = store.get(categories_key(identity_id))
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(f"Ignoring stored categories for {identity_id}: expected a list.")
        return []
    categories = []
    for item in raw:
        try:
            categories.append(Category.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed stored category {item!r}: {e}")
    return categories


def save_custom_categories(store: PreferenceStore, identity_id: str, categories: List[Category]) -> None:
    store.set(categories_key(identity_id), [c.model_dump() for c in categories])
