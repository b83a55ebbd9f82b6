import datetime as dt

import pytest

from client.api import ApiError
from client.auth import AuthProvider
from client.preferences import USER_KEY, MemoryPreferenceStore
from client.validation import (
    FormValidationError,
    validate_category_form,
    validate_expense_form,
    validate_password_change,
    validate_signup_form,
)
from conftest import FakeApi


def test_expense_form_requires_fields():
    with pytest.raises(FormValidationError, match="required"):
        validate_expense_form("", "10", "Food")
    with pytest.raises(FormValidationError):
        validate_expense_form("Lunch", "ten", "Food")
    with pytest.raises(FormValidationError):
        validate_expense_form("Lunch", "-1", "Food")


def test_expense_form_converts_inr_to_usd():
    draft = validate_expense_form(" Lunch ", "835", "Food", date="2025-04-01", currency="INR", usd_to_inr=83.5)
    assert draft.title == "Lunch"
    assert draft.amount == pytest.approx(10.0)
    assert draft.date == dt.date(2025, 4, 1)
    assert draft.description is None


def test_category_and_password_forms():
    with pytest.raises(FormValidationError):
        validate_category_form("  ")
    assert validate_category_form(" Gifts ") == "Gifts"
    with pytest.raises(FormValidationError, match="do not match"):
        validate_password_change("old", "newpass1", "newpass2")
    with pytest.raises(FormValidationError, match="at least 6"):
        validate_password_change("old", "abc", "abc")
    with pytest.raises(FormValidationError, match="at least 8"):
        validate_signup_form("Ana", "a@b.c", "short", "short")


@pytest.mark.asyncio
async def test_login_caches_identity_and_notifies():
    store = MemoryPreferenceStore()
    auth = AuthProvider(FakeApi(), store)
    seen = []

    async def listener(identity):
        seen.append(identity)

    auth.on_identity_change(listener)
    identity = await auth.login("ana@example.com", "Secret123")

    assert identity.id == "u1" and identity.name == "Ana Lima"
    assert store.get(USER_KEY)["email"] == "ana@example.com"
    assert seen == [identity]
    assert auth.is_authenticated and not auth.is_loading
    assert AuthProvider(FakeApi(), store).user == identity


@pytest.mark.asyncio
async def test_validation_failure_makes_no_remote_call():
    api = FakeApi()
    auth = AuthProvider(api, MemoryPreferenceStore())
    with pytest.raises(FormValidationError):
        await auth.login("", "x")
    with pytest.raises(FormValidationError):
        await auth.change_password("old", "new", "")
    assert api.calls == []


@pytest.mark.asyncio
async def test_signup_registers_then_logs_in():
    api = FakeApi()
    auth = AuthProvider(api, MemoryPreferenceStore())
    await auth.signup("ana@example.com", "Secret123", "Ana Lima")
    assert [c[0] for c in api.calls] == ["register", "login"]


@pytest.mark.asyncio
async def test_logout_clears_identity_even_if_server_fails():
    api = FakeApi()
    store = MemoryPreferenceStore()
    auth = AuthProvider(api, store)
    await auth.login("ana@example.com", "Secret123")
    api.fail_with = ApiError("network down")

    await auth.logout()

    assert auth.user is None
    assert store.get(USER_KEY) is None


@pytest.mark.asyncio
async def test_failed_login_resets_loading_flag():
    api = FakeApi()
    api.fail_with = ApiError("Incorrect email or password.", 401)
    auth = AuthProvider(api, MemoryPreferenceStore())
    with pytest.raises(ApiError):
        await auth.login("ana@example.com", "wrong")
    assert not auth.is_loading
    assert auth.user is None


@pytest.mark.asyncio
async def test_update_display_name_is_local():
    api = FakeApi()
    store = MemoryPreferenceStore()
    auth = AuthProvider(api, store)
    await auth.login("ana@example.com", "Secret123")
    calls_before = len(api.calls)

    auth.update_display_name("  Ana Maria ")

    assert auth.user.name == "Ana Maria"
    assert store.get(USER_KEY)["name"] == "Ana Maria"
    assert len(api.calls) == calls_before
