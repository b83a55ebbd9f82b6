"""Async HTTP client for the expense tracker API; the session cookie rides in the client's jar."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from config import get_settings
from models.expense import BackendExpense

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A rejected remote call. `message` is the server's text when it sent one."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str) and message:
            return message
    return response.text or f"HTTP {response.status_code}"


class RemoteStoreClient:
    def __init__(self, base_url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0):
        if http_client is None:
            http_client = httpx.AsyncClient(base_url=base_url or get_settings().api_url, timeout=timeout)
        self._http = http_client

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "RemoteStoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Any = None,
                       params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error: {e}") from e
        if not response.is_success:
            message = _error_message(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise ApiError(message, response.status_code)
        return response.json()

    # --- Accounts ---

    async def register(self, fullname: str, email: str, password: str) -> Dict[str, Any]:
        return await self._request("POST", "/user/register",
                                   json={"fullname": fullname, "email": email, "password": password})

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        return await self._request("POST", "/user/login", json={"email": email, "password": password})

    async def logout(self) -> Dict[str, Any]:
        return await self._request("GET", "/user/logout")

    async def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self._request("PUT", "/user/password",
                                   json={"currentPassword": current_password, "newPassword": new_password})

    # --- Expenses ---

    async def get_expenses(self, category: Optional[str] = None, done: Optional[bool] = None) -> List[BackendExpense]:
        params: Dict[str, Any] = {}
        if category:
            params["category"] = category
        if done is not None:
            params["done"] = "true" if done else "false"
        payload = await self._request("GET", "/expense/getall", params=params or None)
        return [BackendExpense.model_validate(item) for item in payload.get("expense", [])]

    async def add_expense(self, description: str, amount: float, category: str, date: str,
                          notes: Optional[str] = None) -> BackendExpense:
        body: Dict[str, Any] = {"description": description, "amount": amount, "category": category, "date": date}
        if notes is not None:
            body["notes"] = notes
        payload = await self._request("POST", "/expense/add", json=body)
        return BackendExpense.model_validate(payload["expense"])

    async def update_expense(self, expense_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/expense/update/{expense_id}", json=fields)

    async def remove_expense(self, expense_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/expense/remove/{expense_id}")

    async def mark_as_done(self, expense_id: str, done: bool) -> Dict[str, Any]:
        return await self._request("PUT", f"/expense/{expense_id}/done", json={"done": done})
