"""Wires the client components together around one API connection and one preference store."""
import logging
from dataclasses import dataclass
from typing import Optional

from client.api import RemoteStoreClient
from client.auth import AuthProvider
from client.currency import CurrencyRateService
from client.preferences import JsonFilePreferenceStore, PreferenceStore
from client.provider import ExpenseProvider

logger = logging.getLogger(__name__)


@dataclass
class TrackerClient:
    api: RemoteStoreClient
    preferences: PreferenceStore
    auth: AuthProvider
    expenses: ExpenseProvider
    currency: CurrencyRateService

    async def start(self) -> None:
        """Restores the cached identity (if any) and loads its data."""
        if self.auth.user is not None:
            logger.info(f"Restoring session for {self.auth.user.email}.")
        await self.expenses.set_identity(self.auth.user)

    async def aclose(self) -> None:
        await self.api.aclose()


def create_client(
    preferences: Optional[PreferenceStore] = None,
    api: Optional[RemoteStoreClient] = None,
    store_path: str = ".expense_tracker.json",
) -> TrackerClient:
    preferences = preferences if preferences is not None else JsonFilePreferenceStore(store_path)
    api = api if api is not None else RemoteStoreClient()
    auth = AuthProvider(api, preferences)
    expenses = ExpenseProvider(api, preferences)
    auth.on_identity_change(expenses.set_identity)
    return TrackerClient(
        api=api,
        preferences=preferences,
        auth=auth,
        expenses=expenses,
        currency=CurrencyRateService(preferences),
    )
