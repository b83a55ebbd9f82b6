import os

# Must be set before config.get_settings() is first called
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("COOKIE_SECURE", "false")

import datetime as dt
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from models.expense import BackendExpense


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction == -1)
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc


class FakeCollection:
    """The slice of the Motor collection API the services use, kept in a list."""

    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(key) == value for key, value in query.items())

    def find(self, query=None):
        return FakeCursor([dict(d) for d in self.docs if self._matches(d, query or {})])

    async def find_one(self, query):
        for doc in self.docs:
            if self._matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        stored = dict(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def update_one(self, query, update):
        for doc in self.docs:
            if self._matches(doc, query):
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        for index, doc in enumerate(self.docs):
            if self._matches(doc, query):
                del self.docs[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


@pytest.fixture
def collections():
    return SimpleNamespace(expenses=FakeCollection("expenses"), users=FakeCollection("users"))


@pytest.fixture
def app(collections):
    from main import app as fastapi_app
    from routes import get_expenses_collection, get_users_collection

    fastapi_app.dependency_overrides[get_expenses_collection] = lambda: collections.expenses
    fastapi_app.dependency_overrides[get_users_collection] = lambda: collections.users
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def http(app):
    # No context manager: the lifespan (real MongoDB connection) is not started
    return TestClient(app)


def register_and_login(http, email="ana@example.com", password="Secret123", fullname="Ana Lima"):
    http.post("/api/v1/user/register", json={"fullname": fullname, "email": email, "password": password})
    response = http.post("/api/v1/user/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


class FakeApi:
    """Stands in for RemoteStoreClient in provider and auth tests."""

    def __init__(self, records=None):
        self.records: List[BackendExpense] = list(records or [])
        self.calls: List[tuple] = []
        self.fail_with = None
        self._next_id = 1

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def get_expenses(self, category=None, done=None):
        self.calls.append(("get_expenses",))
        self._check()
        return list(self.records)

    async def add_expense(self, description, amount, category, date, notes=None):
        self.calls.append(("add_expense", description, amount, category, date, notes))
        self._check()
        record = make_record(f"srv-{self._next_id}", description, amount, category, notes=notes)
        self._next_id += 1
        self.records.insert(0, record)
        return record

    async def update_expense(self, expense_id, fields):
        self.calls.append(("update_expense", expense_id, fields))
        self._check()
        return {"success": True}

    async def remove_expense(self, expense_id):
        self.calls.append(("remove_expense", expense_id))
        self._check()
        self.records = [r for r in self.records if r.id != expense_id]
        return {"success": True}

    async def login(self, email, password):
        self.calls.append(("login", email))
        self._check()
        return {"message": "ok", "success": True, "user": {"_id": "u1", "fullname": "Ana Lima", "email": email}}

    async def register(self, fullname, email, password):
        self.calls.append(("register", fullname, email))
        self._check()
        return {"message": "ok", "success": True}

    async def logout(self):
        self.calls.append(("logout",))
        self._check()
        return {"message": "ok", "success": True}

    async def change_password(self, current_password, new_password):
        self.calls.append(("change_password",))
        self._check()
        return {"message": "Password updated successfully.", "success": True}


def make_record(record_id, description, amount, category, created=dt.datetime(2025, 1, 15, 9, 30), notes=None):
    return BackendExpense(
        _id=record_id,
        description=description,
        amount=amount,
        category=category,
        notes=notes,
        createdAt=created,
    )
