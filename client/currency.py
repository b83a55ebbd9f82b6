"""USD to INR rate lookup with a one-hour cache in the preference store."""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from client.preferences import CURRENCY_KEY, PreferenceStore

logger = logging.getLogger(__name__)

FALLBACK_RATE = 83.5
CACHE_DURATION_MS = 60 * 60 * 1000
RATES_URL = "https://api.frankfurter.app/latest?from=USD&to=INR"


@dataclass(frozen=True)
class CurrencyRates:
    usd_to_inr: float
    last_updated: Optional[datetime]
    error: Optional[str] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


def _from_ms(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)


class CurrencyRateService:
    def __init__(self, preferences: PreferenceStore, http_client: Optional[httpx.AsyncClient] = None,
                 clock: Callable[[], int] = _now_ms, timeout: float = 5.0):
        self._preferences = preferences
        self._http = http_client
        self._clock = clock
        self._timeout = timeout
        self.rates = CurrencyRates(usd_to_inr=FALLBACK_RATE, last_updated=None)

    def _cached(self):
        cached = self._preferences.get(CURRENCY_KEY)
        if not isinstance(cached, dict):
            return None
        try:
            return float(cached["rate"]), int(cached["timestamp"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed cached currency rate: {cached!r}")
            return None

    async def _fetch_rate(self) -> float:
        if self._http is not None:
            response = await self._http.get(RATES_URL)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(RATES_URL)
        response.raise_for_status()
        return float(response.json()["rates"]["INR"])

    async def load(self) -> CurrencyRates:
        """
        Returns a fresh cached rate without touching the network, otherwise
        fetches a live one. Any fetch failure degrades to the last cached rate,
        or the hardcoded fallback, with `error` set.
        """
        cached = self._cached()
        now = self._clock()
        if cached and now - cached[1] < CACHE_DURATION_MS:
            self.rates = CurrencyRates(usd_to_inr=cached[0], last_updated=_from_ms(cached[1]))
            return self.rates

        try:
            rate = await self._fetch_rate()
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Currency rate fetch error: {e}")
            if cached:
                self.rates = CurrencyRates(cached[0], _from_ms(cached[1]), "Failed to fetch live rates, using cached rate")
            else:
                self.rates = CurrencyRates(FALLBACK_RATE, None, "Failed to fetch live rates, using fallback")
            return self.rates

        self._preferences.set(CURRENCY_KEY, {"rate": rate, "timestamp": now})
        self.rates = CurrencyRates(usd_to_inr=rate, last_updated=_from_ms(now))
        logger.info(f"Fetched USD->INR rate {rate}.")
        return self.rates

    def format_usd(self, amount: float) -> str:
        return format_usd(amount)

    def format_inr(self, amount_usd: float) -> str:
        return format_inr(amount_usd * self.rates.usd_to_inr)

    def inr_to_usd(self, amount_inr: float) -> float:
        return amount_inr / self.rates.usd_to_inr


def format_usd(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_inr(amount: float) -> str:
    """Indian digit grouping: last three digits, then pairs (12,34,567.89)."""
    sign = "-" if amount < 0 else ""
    whole, fraction = f"{abs(amount):.2f}".split(".")
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    grouped = ",".join(groups + [tail])
    return f"{sign}₹{grouped}.{fraction}"
