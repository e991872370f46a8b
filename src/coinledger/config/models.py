"""Configuration models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from coinledger.market.models import DEFAULT_INSTRUMENTS, InstrumentSpec


@dataclass(frozen=True)
class FeedConfig:
    quote_url: str = "https://finnhub.io/api/v1"
    stream_url: str = "wss://ws.finnhub.io"
    token: str = ""
    token_env: Optional[str] = "FINNHUB_TOKEN"
    history_capacity: int = 50
    seed_samples: int = 20
    seed_interval_seconds: float = 60.0
    seed_jitter_pct: float = 0.01
    request_timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_base: float = 1.5
    reconnect: bool = False


@dataclass(frozen=True)
class LedgerConfig:
    min_leverage: float = 1.0
    max_leverage: float = 200.0
    dust_epsilon: float = 1e-6
    demo_initial_balance: float = 10000.0
    live_initial_balance: float = 0.0
    demo_duration_days: float = 3.0
    default_watchlist: list[str] = field(default_factory=lambda: ["BTC", "ETH", "SOL"])


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "memory"
    path: Optional[str] = None


@dataclass(frozen=True)
class MonitoringConfig:
    audit_log_path: str = "runtime/audit.log"


@dataclass(frozen=True)
class RuntimeConfig:
    health_check_interval_seconds: float = 10.0
    status_interval_seconds: float = 5.0
    status_path: str = "runtime/status.json"


@dataclass(frozen=True)
class AppConfig:
    name: str
    version: str
    instruments: dict[str, InstrumentSpec] = field(default_factory=lambda: dict(DEFAULT_INSTRUMENTS))
    feed: FeedConfig = FeedConfig()
    ledger: LedgerConfig = LedgerConfig()
    store: StoreConfig = StoreConfig()
    monitoring: MonitoringConfig = MonitoringConfig()
    runtime: RuntimeConfig = RuntimeConfig()
