"""Streaming trade feed over a websocket."""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

import websocket

from coinledger.market.models import StreamState, Tick

STREAM_URL = "wss://ws.finnhub.io"

log = logging.getLogger(__name__)


def parse_trade_message(raw: str | bytes) -> list[Tick]:
    """Extract trade ticks from one inbound message. Malformed payloads yield nothing."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(message, dict) or message.get("type") != "trade":
        return []
    data = message.get("data")
    if not isinstance(data, list):
        return []

    ticks: list[Tick] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        symbol = item.get("s")
        price = item.get("p")
        stamp = item.get("t")
        if not isinstance(symbol, str) or isinstance(price, bool) or not isinstance(price, (int, float)):
            continue
        if not math.isfinite(price) or price <= 0:
            continue
        if isinstance(stamp, bool) or not isinstance(stamp, (int, float)) or not math.isfinite(stamp):
            continue
        ticks.append(
            Tick(
                provider_symbol=symbol,
                price=float(price),
                time=datetime.fromtimestamp(stamp / 1000, tz=timezone.utc),
            )
        )
    return ticks


def subscribe_message(provider_symbol: str) -> str:
    return json.dumps({"type": "subscribe", "symbol": provider_symbol})


class PriceStream(threading.Thread):
    """One websocket connection subscribed to every tracked instrument.

    The connection is opened once unless ``reconnect`` is set; its liveness is
    reported through ``on_state`` so a supervisor can restart it.
    """

    def __init__(
        self,
        *,
        url: str,
        provider_symbols: Iterable[str],
        on_message: Callable[[str], None],
        on_state: Optional[Callable[[StreamState, Optional[str]], None]] = None,
        reconnect: bool = False,
        name: str = "PriceStream",
    ):
        super().__init__(daemon=True, name=name)
        self.url = url
        self.provider_symbols = list(provider_symbols)
        self.on_message_cb = on_message
        self._on_state_hook = on_state
        self.reconnect = reconnect
        self._ws: websocket.WebSocketApp | None = None
        self._stop = threading.Event()

        self.connected = threading.Event()
        self.state = StreamState.IDLE

    def _set_state(self, state: StreamState, detail: Optional[str] = None) -> None:
        self.state = state
        try:
            if self._on_state_hook:
                self._on_state_hook(state, detail)
        except Exception:
            log.exception("[%s] state hook failed", self.name)

    def run(self):
        log.info("[%s] connecting → %s", self.name, self.url.split("?")[0])

        def _on_open(ws):
            self.connected.set()
            log.info("[%s] WS CONNECTED", self.name)
            for symbol in self.provider_symbols:
                ws.send(subscribe_message(symbol))
            self._set_state(StreamState.OPEN)

        def _on_close(_ws, *_a):
            self.connected.clear()
            log.warning("[%s] WS CLOSED", self.name)
            if self.state != StreamState.ERROR:
                self._set_state(StreamState.CLOSED)

        def _on_error(_ws, err):
            log.error("[%s] WS ERROR: %s", self.name, err)
            self._set_state(StreamState.ERROR, str(err))

        while not self._stop.is_set():
            self._set_state(StreamState.CONNECTING)
            try:
                self._ws = websocket.WebSocketApp(
                    self.url,
                    on_open=_on_open,
                    on_message=lambda ws, msg: self._handle(msg),
                    on_error=_on_error,
                    on_close=_on_close,
                )
                self._ws.run_forever(ping_interval=20, ping_timeout=10)
            except Exception as e:
                self.connected.clear()
                log.exception("[%s] WS exception: %s", self.name, e)
                self._set_state(StreamState.ERROR, repr(e))

            if not self.state.is_down:
                self._set_state(StreamState.CLOSED)
            if not self.reconnect:
                break

            for _ in range(10):
                if self._stop.is_set():
                    break
                time.sleep(0.2)

    def stop(self):
        self._stop.set()
        self.connected.clear()
        ws = self._ws
        if ws is not None:
            try:
                ws.close()
            except Exception:
                log.debug("[%s] close failed", self.name, exc_info=True)

    def _handle(self, msg: Any):
        if self._stop.is_set():
            return
        try:
            self.on_message_cb(msg)
        except Exception:
            log.exception("[%s] message handler failed", self.name)
