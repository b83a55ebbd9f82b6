"""
Session-scoped expense and category state for the client.

The provider owns the in-memory collections for the signed-in identity. The
server is the source of truth for expenses: a local change is applied only
after the remote call succeeds, so a failed call leaves state untouched and
nothing has to be rolled back. Categories have no server-side entity; they
are derived from the expense collection, merged with the identity's custom
categories from the preference store, and edited locally.

Everything runs on one asyncio loop. Each identity change bumps a generation
counter, and a fetch that completes under an older generation is dropped, so
a slow fetch can never repopulate state after a logout or account switch.
Expense mutations are tied to the session (identity) they started in: a
remote call that completes after the identity changed is logged and its
result is not applied locally.
"""
import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from client.api import RemoteStoreClient
from client.categories import custom_subset, derive_categories, synthesize_category
from client.preferences import PreferenceStore, load_custom_categories, save_custom_categories
from models.category import DEFAULT_ICON, PALETTE, Category
from models.expense import BackendExpense, Expense, ExpenseDraft
from models.user import Identity

logger = logging.getLogger(__name__)

# Local Expense field -> remote record field
_REMOTE_FIELDS = {
    "title": "description",
    "amount": "amount",
    "category": "category",
    "date": "date",
    "description": "notes",
}


class ProviderState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True)
class Snapshot:
    state: ProviderState
    expenses: Tuple[Expense, ...]
    categories: Tuple[Category, ...]
    last_error: Optional[str] = None


Listener = Callable[[Snapshot], None]


def map_backend_expense(record: BackendExpense, today: Optional[dt.date] = None) -> Expense:
    """Remote record -> client view. The display date is the record's creation day."""
    if record.created_at is not None:
        date = record.created_at.date()
    else:
        date = today or dt.date.today()
    return Expense(
        id=record.id,
        title=record.description,
        amount=record.amount,
        category=record.category,
        date=date,
        description=record.notes or None,
    )


def to_remote_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Renames changed local fields to the wire names, dropping unknown and unset ones."""
    remote = {}
    for name, value in fields.items():
        if name not in _REMOTE_FIELDS or value is None:
            continue
        if isinstance(value, dt.date):
            value = value.isoformat()
        remote[_REMOTE_FIELDS[name]] = value
    return remote


class ExpenseProvider:
    def __init__(self, api: RemoteStoreClient, preferences: PreferenceStore,
                 palette=PALETTE, clock: Callable[[], dt.date] = dt.date.today):
        self._api = api
        self._preferences = preferences
        self._palette = palette
        self._clock = clock
        self._identity: Optional[Identity] = None
        self._generation = 0
        self._session = 0
        self._listeners: List[Listener] = []
        self.state = ProviderState.UNAUTHENTICATED
        self.expenses: List[Expense] = []
        self.categories: List[Category] = []
        self.last_error: Optional[str] = None

    # --- Observation ---

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_loading(self) -> bool:
        return self.state is ProviderState.LOADING

    def snapshot(self) -> Snapshot:
        return Snapshot(self.state, tuple(self.expenses), tuple(self.categories), self.last_error)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a callback run after every state change; returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener {listener!r} failed")

    # --- Identity lifecycle ---

    async def set_identity(self, identity: Optional[Identity]) -> None:
        """Resets state for a new identity (or logout) and, when signed in, loads its expenses."""
        self._generation += 1
        self._session += 1
        self._identity = identity
        self.expenses = []
        self.categories = []
        self.last_error = None
        if identity is None:
            self.state = ProviderState.UNAUTHENTICATED
            self._publish()
            return
        self.state = ProviderState.LOADING
        self._publish()
        await self._fetch(self._generation)

    async def refresh(self) -> None:
        """Re-fetches expenses for the current identity."""
        if self._identity is None:
            return
        self._generation += 1
        self.state = ProviderState.LOADING
        self._publish()
        await self._fetch(self._generation)

    async def _fetch(self, generation: int) -> None:
        identity = self._identity
        try:
            records = await self._api.get_expenses()
        except Exception as e:
            if generation != self._generation:
                logger.info("Discarding failed fetch for a superseded identity.")
                return
            logger.warning(f"Fetching expenses failed: {e}")
            self.expenses = []
            self.categories = self._derive()
            self.last_error = str(e)
            self.state = ProviderState.READY
            self._publish()
            return

        if generation != self._generation:
            logger.info(f"Discarding stale fetch of {len(records)} expenses.")
            return
        today = self._clock()
        self.expenses = [map_backend_expense(r, today) for r in records]
        self.categories = self._derive()
        self.last_error = None
        self.state = ProviderState.READY
        logger.info(f"Loaded {len(self.expenses)} expenses and {len(self.categories)} categories "
                    f"for {identity.email if identity else 'anonymous'}.")
        self._publish()

    def _derive(self) -> List[Category]:
        identity_id = self._identity.id if self._identity else None
        custom = load_custom_categories(self._preferences, identity_id)
        return derive_categories(self.expenses, custom, self._palette)

    # --- Expense mutations (remote first, then local) ---

    def _superseded(self, session: int, action: str) -> bool:
        if session == self._session:
            return False
        logger.info(f"Identity changed while {action}; not applying the result locally.")
        return True

    async def add_expense(self, draft: ExpenseDraft) -> Expense:
        session = self._session
        record = await self._api.add_expense(
            description=draft.title,
            amount=draft.amount,
            category=draft.category,
            date=draft.date.isoformat(),
            notes=draft.description,
        )
        expense = map_backend_expense(record, self._clock())
        if self._superseded(session, f"adding expense {expense.id}"):
            return expense
        self.expenses = [expense] + [e for e in self.expenses if e.id != expense.id]
        self._ensure_category(expense.category)
        self._publish()
        return expense

    async def update_expense(self, expense_id: str, **changes: Any) -> Optional[Expense]:
        """Sends only the changed fields, then shallow-merges them into the local record."""
        changes = {k: v for k, v in changes.items() if k in _REMOTE_FIELDS and v is not None}
        if isinstance(changes.get("date"), str):
            changes["date"] = dt.date.fromisoformat(changes["date"])
        if not changes:
            return self._find(expense_id)
        session = self._session
        await self._api.update_expense(expense_id, to_remote_fields(changes))
        if self._superseded(session, f"updating expense {expense_id}"):
            return None
        updated = None
        next_expenses = []
        for expense in self.expenses:
            if expense.id == expense_id:
                expense = expense.model_copy(update=changes)
                updated = expense
            next_expenses.append(expense)
        self.expenses = next_expenses
        if "category" in changes:
            self._ensure_category(changes["category"])
        self._publish()
        return updated

    async def delete_expense(self, expense_id: str) -> None:
        session = self._session
        await self._api.remove_expense(expense_id)
        if self._superseded(session, f"deleting expense {expense_id}"):
            return
        self.expenses = [e for e in self.expenses if e.id != expense_id]
        self._publish()

    async def delete_all_expenses(self) -> int:
        """
        Deletes every loaded expense one by one and returns how many were removed.
        Stops at the first failure, or when the identity changes mid-way.
        """
        session = self._session
        ids = [e.id for e in self.expenses]
        deleted = 0
        for expense_id in ids:
            if session != self._session:
                break
            await self.delete_expense(expense_id)
            deleted += 1
        return deleted

    def _find(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self.expenses if e.id == expense_id), None)

    # --- Category mutations (local only) ---

    def add_category(self, name: str, color: str, icon: str = DEFAULT_ICON) -> Category:
        category = Category(id=uuid.uuid4().hex, name=name, color=color, icon=icon)
        self.categories = self.categories + [category]
        self._persist_categories()
        self._publish()
        return category

    def update_category(self, category_id: str, **changes: Any) -> Optional[Category]:
        changes = {k: v for k, v in changes.items() if k in ("name", "color", "icon") and v is not None}
        updated = None
        next_categories = []
        for category in self.categories:
            if category.id == category_id:
                category = category.model_copy(update=changes)
                updated = category
            next_categories.append(category)
        self.categories = next_categories
        self._persist_categories()
        self._publish()
        return updated

    def delete_category(self, category_id: str) -> None:
        """Removes the category entity only; expenses keep their category string."""
        self.categories = [c for c in self.categories if c.id != category_id]
        self._persist_categories()
        self._publish()

    def _ensure_category(self, name: str) -> None:
        if any(c.name == name for c in self.categories):
            return
        self.categories = self.categories + [synthesize_category(name, self.categories, self._palette)]
        self._persist_categories()

    def _persist_categories(self) -> None:
        if self._identity is None:
            return
        save_custom_categories(self._preferences, self._identity.id, custom_subset(self.categories))
