"""Market data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"

    @property
    def is_down(self) -> bool:
        return self in {StreamState.CLOSED, StreamState.ERROR}


@dataclass(frozen=True)
class InstrumentSpec:
    symbol: str
    provider_symbol: str
    name: str


DEFAULT_INSTRUMENTS: dict[str, InstrumentSpec] = {
    spec.symbol: spec
    for spec in (
        InstrumentSpec("BTC", "BINANCE:BTCUSDT", "Bitcoin"),
        InstrumentSpec("ETH", "BINANCE:ETHUSDT", "Ethereum"),
        InstrumentSpec("SOL", "BINANCE:SOLUSDT", "Solana"),
        InstrumentSpec("BNB", "BINANCE:BNBUSDT", "Binance Coin"),
        InstrumentSpec("XRP", "BINANCE:XRPUSDT", "Ripple"),
        InstrumentSpec("ADA", "BINANCE:ADAUSDT", "Cardano"),
        InstrumentSpec("DOGE", "BINANCE:DOGEUSDT", "Dogecoin"),
        InstrumentSpec("DOT", "BINANCE:DOTUSDT", "Polkadot"),
    )
}


@dataclass(frozen=True)
class PricePoint:
    time: datetime
    price: float


@dataclass(frozen=True)
class QuoteSnapshot:
    price: float
    change_pct: float
    high: float
    low: float


@dataclass(frozen=True)
class Tick:
    provider_symbol: str
    price: float
    time: datetime


@dataclass(frozen=True)
class MarketData:
    symbol: str
    name: str
    price: float
    change_24h: float
    volume: float
    high_24h: float
    low_24h: float
    history: tuple[PricePoint, ...] = field(default_factory=tuple)

    @classmethod
    def zeroed(cls, symbol: str, name: str) -> "MarketData":
        return cls(symbol=symbol, name=name, price=0.0, change_24h=0.0, volume=0.0, high_24h=0.0, low_24h=0.0)
