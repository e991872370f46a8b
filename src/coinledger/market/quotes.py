"""Quote snapshot REST client."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional

import requests

from coinledger.ledger.errors import UpstreamUnavailable
from coinledger.market.models import QuoteSnapshot

QUOTE_URL = "https://finnhub.io/api/v1"

log = logging.getLogger(__name__)


def _number(payload: dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def parse_quote(payload: Any) -> QuoteSnapshot:
    """Map a quote response to a snapshot; anything without a usable price is unavailable."""
    if not isinstance(payload, dict):
        raise UpstreamUnavailable(f"Unexpected quote payload: {payload!r:.200}")
    price = _number(payload, "c")
    if price is None or price <= 0:
        raise UpstreamUnavailable(f"Quote missing current price: {payload!r:.200}")
    high = _number(payload, "h") or price
    low = _number(payload, "l") or price
    return QuoteSnapshot(
        price=price,
        change_pct=_number(payload, "dp") or 0.0,
        high=high,
        low=low,
    )


class QuoteClient:
    """Public quote endpoint with retry/backoff for 429 and 5xx."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = QUOTE_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.5,
        session: Optional[requests.Session] = None,
        sleep=time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token or ""
        self.timeout = float(timeout)
        self.max_retries = max(1, int(max_retries))
        self.backoff_base = float(backoff_base)
        self.sess = session or requests.Session()
        self._sleep = sleep

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        req_params = dict(params)
        if self.token:
            req_params["token"] = self.token

        last_err: Optional[str] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                r = self.sess.get(url, params=req_params, timeout=self.timeout)
            except requests.RequestException as e:
                last_err = repr(e)
                delay = self.backoff_base * attempt
                log.warning(
                    "Quote request error (%s), retry %d/%d, sleep %.1fs | %s",
                    path, attempt, self.max_retries, delay, last_err,
                )
                self._sleep(delay)
                continue

            if r.status_code == 429 or r.status_code >= 500:
                last_err = f"HTTP {r.status_code}"
                delay = self.backoff_base * attempt
                log.warning(
                    "Quote HTTP %d (%s), retry %d/%d, sleep %.1fs",
                    r.status_code, path, attempt, self.max_retries, delay,
                )
                self._sleep(delay)
                continue

            if r.status_code >= 400:
                raise UpstreamUnavailable(f"Quote HTTP {r.status_code} {path}: {r.text[:200]}")

            try:
                return r.json()
            except ValueError as e:
                raise UpstreamUnavailable(f"Quote response is not JSON ({path}): {r.text[:200]}") from e

        raise UpstreamUnavailable(f"Quote request failed after {self.max_retries} retries: {path} | last_err={last_err}")

    def fetch_quote(self, provider_symbol: str) -> QuoteSnapshot:
        return parse_quote(self._get("/quote", {"symbol": provider_symbol}))
