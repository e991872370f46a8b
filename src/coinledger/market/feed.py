"""Market feed: one-shot quote snapshot merged with a streaming trade feed."""

from __future__ import annotations

import logging
import math
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Mapping, Optional

from coinledger.ledger.errors import UnknownInstrument, UpstreamUnavailable
from coinledger.market.history import PriceHistoryBuffer
from coinledger.market.models import DEFAULT_INSTRUMENTS, InstrumentSpec, MarketData, PricePoint, StreamState
from coinledger.market.stream import STREAM_URL, PriceStream, parse_trade_message

log = logging.getLogger(__name__)

StreamFactory = Callable[..., object]
StateListener = Callable[[StreamState, Optional[str]], None]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MarketFeed:
    """Owns the market view. Only the feed writes quotes; readers get immutable copies.

    Each quote is replaced wholesale under a lock, so a reader never observes
    a half-updated record.
    """

    def __init__(
        self,
        quote_client,
        instruments: Optional[Mapping[str, InstrumentSpec]] = None,
        *,
        stream_url: str = STREAM_URL,
        token: str = "",
        history_capacity: int = 50,
        seed_samples: int = 20,
        seed_interval_seconds: float = 60.0,
        seed_jitter_pct: float = 0.01,
        reconnect: bool = False,
        stream_factory: Optional[StreamFactory] = None,
        audit_log: Optional[object] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.quote_client = quote_client
        self.instruments = dict(instruments or DEFAULT_INSTRUMENTS)
        self._by_provider = {spec.provider_symbol: spec.symbol for spec in self.instruments.values()}
        self.stream_url = stream_url
        self.token = token
        self.history_capacity = history_capacity
        self.seed_samples = seed_samples
        self.seed_interval = timedelta(seconds=seed_interval_seconds)
        self.seed_jitter_pct = seed_jitter_pct
        self.reconnect = reconnect
        self._stream_factory = stream_factory or PriceStream
        self._audit_log = audit_log
        self._clock = clock or _utcnow
        self._rng = rng or random.Random()

        self._lock = threading.Lock()
        self._quotes: dict[str, MarketData] = {}
        self._buffers: dict[str, PriceHistoryBuffer] = {}
        self._stream = None
        self._generation = 0
        self._stream_state = StreamState.IDLE
        self._stream_detail: Optional[str] = None
        self._state_listeners: list[StateListener] = []
        self._closed = False

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    # ------------------------------------------------------------------
    # snapshot
    # ------------------------------------------------------------------

    def initialize(self, symbols: Optional[Iterable[str]] = None, start_stream: bool = True) -> dict[str, MarketData]:
        """Fetch one quote per symbol, then open the stream.

        A failed fetch seeds a zeroed quote instead of failing initialization.
        """
        symbols = list(symbols) if symbols is not None else list(self.instruments)
        for symbol in symbols:
            if symbol not in self.instruments:
                raise UnknownInstrument(symbol)

        if symbols:
            with ThreadPoolExecutor(max_workers=min(8, len(symbols)), thread_name_prefix="quote") as pool:
                seeded = list(pool.map(self._seed_quote, symbols))
        else:
            seeded = []

        with self._lock:
            for quote, buffer in seeded:
                self._quotes[quote.symbol] = quote
                self._buffers[quote.symbol] = buffer

        available = [quote.symbol for quote, _ in seeded if quote.price > 0]
        self._log("feed_initialized", {"symbols": symbols, "available": available})
        log.info("Market feed initialized: %d/%d quotes available", len(available), len(symbols))

        if start_stream:
            self.start_stream()
        return self.get_market_view()

    def _seed_quote(self, symbol: str) -> tuple[MarketData, PriceHistoryBuffer]:
        spec = self.instruments[symbol]
        buffer = PriceHistoryBuffer(self.history_capacity)
        try:
            snapshot = self.quote_client.fetch_quote(spec.provider_symbol)
        except UpstreamUnavailable as exc:
            log.warning("Quote unavailable for %s (%s): %s", symbol, spec.provider_symbol, exc)
            self._log("quote_unavailable", {"symbol": symbol, "error": str(exc)})
            return MarketData.zeroed(symbol, spec.name), buffer

        now = self._clock()
        for i in range(self.seed_samples):
            jitter = 1 + (self._rng.random() - 0.5) * self.seed_jitter_pct
            buffer.append(now - (self.seed_samples - i) * self.seed_interval, snapshot.price * jitter)
        buffer.append(now, snapshot.price)

        quote = MarketData(
            symbol=symbol,
            name=spec.name,
            price=snapshot.price,
            change_24h=snapshot.change_pct,
            volume=0.0,
            high_24h=snapshot.high,
            low_24h=snapshot.low,
            history=buffer.snapshot(),
        )
        return quote, buffer

    # ------------------------------------------------------------------
    # streaming
    # ------------------------------------------------------------------

    def _stream_url(self) -> str:
        if not self.token:
            return self.stream_url
        return f"{self.stream_url}?token={self.token}"

    def start_stream(self) -> None:
        """Open a stream for every seeded symbol, stopping any stream already running."""
        if self._closed:
            raise RuntimeError("Market feed is closed")
        previous = self._stream
        if previous is not None:
            self._stream = None
            previous.stop()
        with self._lock:
            provider_symbols = [self.instruments[symbol].provider_symbol for symbol in self._quotes]
        self._generation += 1
        generation = self._generation
        stream = self._stream_factory(
            url=self._stream_url(),
            provider_symbols=provider_symbols,
            on_message=self.handle_message,
            on_state=lambda state, detail: self._on_stream_state(state, detail, generation),
            reconnect=self.reconnect,
        )
        self._stream = stream
        self._on_stream_state(StreamState.CONNECTING, None, generation)
        stream.start()

    def restart_stream(self) -> None:
        self._log("stream_restarted", {"previous_state": self._stream_state.value})
        self.start_stream()

    def _on_stream_state(self, state: StreamState, detail: Optional[str], generation: int) -> None:
        # Late callbacks from a replaced stream are ignored.
        if self._closed or generation != self._generation:
            return
        changed = state != self._stream_state
        self._stream_state = state
        self._stream_detail = detail
        if not changed:
            return
        self._log("stream_state", {"state": state.value, "detail": detail})
        for listener in list(self._state_listeners):
            try:
                listener(state, detail)
            except Exception:
                log.exception("stream state listener failed")

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    @property
    def stream_state(self) -> StreamState:
        return self._stream_state

    @property
    def stream_detail(self) -> Optional[str]:
        return self._stream_detail

    @property
    def closed(self) -> bool:
        return self._closed

    def handle_message(self, raw: str | bytes) -> int:
        applied = 0
        for tick in parse_trade_message(raw):
            symbol = self._by_provider.get(tick.provider_symbol)
            if symbol is None:
                continue
            if self.on_tick(symbol, tick.price, tick.time):
                applied += 1
        return applied

    def on_tick(self, symbol: str, price: float, timestamp: datetime) -> bool:
        """Apply one trade tick. Unknown symbols, unusable prices and ticks after close are dropped."""
        if not math.isfinite(price) or price <= 0:
            return False
        with self._lock:
            if self._closed:
                return False
            quote = self._quotes.get(symbol)
            buffer = self._buffers.get(symbol)
            if quote is None or buffer is None:
                return False
            buffer.append(timestamp, price)
            low = price if quote.low_24h <= 0 else min(quote.low_24h, price)
            self._quotes[symbol] = replace(
                quote,
                price=price,
                high_24h=max(quote.high_24h, price),
                low_24h=low,
                history=buffer.snapshot(),
            )
        return True

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_market_view(self) -> dict[str, MarketData]:
        with self._lock:
            return dict(self._quotes)

    def get_quote(self, symbol: str) -> MarketData:
        with self._lock:
            quote = self._quotes.get(symbol)
        if quote is None:
            raise UnknownInstrument(symbol)
        return quote

    def prices(self) -> dict[str, float]:
        with self._lock:
            return {symbol: quote.price for symbol, quote in self._quotes.items()}

    def history(self, symbol: str) -> tuple[PricePoint, ...]:
        return self.get_quote(symbol).history

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._stream_state = StreamState.CLOSED
            stream = self._stream
        if stream is not None:
            stream.stop()
