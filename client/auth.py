"""Client-side identity: login, signup and logout, with the identity cached between runs."""
import logging
from typing import Awaitable, Callable, List, Optional

from client.api import ApiError, RemoteStoreClient
from client.preferences import PreferenceStore, clear_identity, load_identity, save_identity
from client.validation import (
    FormValidationError,
    validate_login_form,
    validate_password_change,
    validate_signup_form,
)
from models.user import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity]], Awaitable[None]]


class AuthProvider:
    def __init__(self, api: RemoteStoreClient, preferences: PreferenceStore):
        self._api = api
        self._preferences = preferences
        self._listeners: List[IdentityListener] = []
        self.user: Optional[Identity] = load_identity(preferences)
        self.is_loading = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def on_identity_change(self, listener: IdentityListener) -> None:
        self._listeners.append(listener)

    async def _set_user(self, user: Optional[Identity]) -> None:
        self.user = user
        if user is None:
            clear_identity(self._preferences)
        else:
            save_identity(self._preferences, user)
        for listener in list(self._listeners):
            await listener(user)

    async def _login(self, email: str, password: str) -> Identity:
        response = await self._api.login(email, password)
        user = response["user"]
        identity = Identity(id=user["_id"], email=user["email"], name=user["fullname"])
        await self._set_user(identity)
        logger.info(f"Signed in as {identity.email}.")
        return identity

    async def login(self, email: str, password: str) -> Identity:
        validate_login_form(email, password)
        self.is_loading = True
        try:
            return await self._login(email, password)
        finally:
            self.is_loading = False

    async def signup(self, email: str, password: str, name: str, confirm_password: Optional[str] = None) -> Identity:
        validate_signup_form(name, email, password, password if confirm_password is None else confirm_password)
        self.is_loading = True
        try:
            await self._api.register(name, email, password)
            return await self._login(email, password)
        finally:
            self.is_loading = False

    async def logout(self) -> None:
        """Clears the identity even when the server call fails."""
        try:
            await self._api.logout()
        except ApiError as e:
            logger.warning(f"Server logout failed, clearing local identity anyway: {e}")
        await self._set_user(None)

    async def change_password(self, current_password: str, new_password: str, confirm_password: str) -> str:
        validate_password_change(current_password, new_password, confirm_password)
        response = await self._api.change_password(current_password, new_password)
        return response.get("message", "Password changed successfully")

    def update_display_name(self, name: str) -> Identity:
        """Renames the cached identity locally; the server account is unchanged."""
        if not name or not name.strip():
            raise FormValidationError("Please enter a name")
        if self.user is None:
            raise FormValidationError("Not signed in")
        self.user = self.user.model_copy(update={"name": name.strip()})
        save_identity(self._preferences, self.user)
        return self.user
