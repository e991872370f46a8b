"""Load and freeze configuration files."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from coinledger.config.models import (
    AppConfig,
    FeedConfig,
    LedgerConfig,
    MonitoringConfig,
    RuntimeConfig,
    StoreConfig,
)
from coinledger.market.models import DEFAULT_INSTRUMENTS, InstrumentSpec


def load_config(path: str | Path) -> AppConfig:
    path = Path(path)
    data = _load_yaml(path)

    name = _require(data, "name")
    version = str(_require(data, "version"))

    return AppConfig(
        name=name,
        version=version,
        instruments=_parse_instruments(data.get("instruments")),
        feed=_parse_feed(data.get("feed", {})),
        ledger=_parse_ledger(data.get("ledger", {})),
        store=_parse_store(data.get("store", {})),
        monitoring=_parse_monitoring(data.get("monitoring", {})),
        runtime=_parse_runtime(data.get("runtime", {})),
    )


def compute_config_hash(path: str | Path) -> str:
    path = Path(path)
    content = path.read_bytes()
    return hashlib.sha256(content).hexdigest()


def freeze_config(path: str | Path, lock_path: Optional[str | Path] = None) -> Path:
    path = Path(path)
    config_hash = compute_config_hash(path)
    if lock_path is None:
        lock_path = path.with_suffix(path.suffix + ".lock.json")
    lock_path = Path(lock_path)

    payload = {
        "config_path": str(path),
        "config_hash": config_hash,
        "frozen_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    lock_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return lock_path


def verify_config_lock(path: str | Path, lock_path: Optional[str | Path] = None) -> bool:
    path = Path(path)
    if lock_path is None:
        lock_path = path.with_suffix(path.suffix + ".lock.json")
    lock_path = Path(lock_path)
    if not lock_path.exists():
        return False
    payload = json.loads(lock_path.read_text(encoding="utf-8"))
    return payload.get("config_hash") == compute_config_hash(path)


def resolve_token(feed: FeedConfig) -> str:
    if feed.token:
        return feed.token
    if feed.token_env:
        return os.getenv(feed.token_env, "")
    return ""


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config must be a mapping")
    return data


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"Missing required config key: {key}")
    return data[key]


def _parse_instruments(data: Optional[dict[str, Any]]) -> dict[str, InstrumentSpec]:
    if not data:
        return dict(DEFAULT_INSTRUMENTS)
    if not isinstance(data, dict):
        raise ValueError("instruments must be a mapping of symbol to provider settings")
    instruments: dict[str, InstrumentSpec] = {}
    for symbol, payload in data.items():
        payload = payload or {}
        instruments[str(symbol)] = InstrumentSpec(
            symbol=str(symbol),
            provider_symbol=str(_require(payload, "provider_symbol")),
            name=str(payload.get("name", symbol)),
        )
    return instruments


def _parse_feed(data: dict[str, Any]) -> FeedConfig:
    defaults = FeedConfig()
    return FeedConfig(
        quote_url=str(data.get("quote_url", defaults.quote_url)),
        stream_url=str(data.get("stream_url", defaults.stream_url)),
        token=str(data.get("token") or ""),
        token_env=data.get("token_env", defaults.token_env),
        history_capacity=int(data.get("history_capacity", defaults.history_capacity)),
        seed_samples=int(data.get("seed_samples", defaults.seed_samples)),
        seed_interval_seconds=float(data.get("seed_interval_seconds", defaults.seed_interval_seconds)),
        seed_jitter_pct=float(data.get("seed_jitter_pct", defaults.seed_jitter_pct)),
        request_timeout_seconds=float(data.get("request_timeout_seconds", defaults.request_timeout_seconds)),
        max_retries=int(data.get("max_retries", defaults.max_retries)),
        backoff_base=float(data.get("backoff_base", defaults.backoff_base)),
        reconnect=bool(data.get("reconnect", defaults.reconnect)),
    )


def _parse_ledger(data: dict[str, Any]) -> LedgerConfig:
    defaults = LedgerConfig()
    min_leverage = float(data.get("min_leverage", defaults.min_leverage))
    max_leverage = float(data.get("max_leverage", defaults.max_leverage))
    if min_leverage <= 0 or max_leverage < min_leverage:
        raise ValueError(f"Invalid leverage range: {min_leverage}-{max_leverage}")
    return LedgerConfig(
        min_leverage=min_leverage,
        max_leverage=max_leverage,
        dust_epsilon=float(data.get("dust_epsilon", defaults.dust_epsilon)),
        demo_initial_balance=float(data.get("demo_initial_balance", defaults.demo_initial_balance)),
        live_initial_balance=float(data.get("live_initial_balance", defaults.live_initial_balance)),
        demo_duration_days=float(data.get("demo_duration_days", defaults.demo_duration_days)),
        default_watchlist=[str(item) for item in data.get("default_watchlist", defaults.default_watchlist)],
    )


def _parse_store(data: dict[str, Any]) -> StoreConfig:
    backend = str(data.get("backend", "memory"))
    if backend not in {"memory", "sqlite"}:
        raise ValueError(f"Invalid store backend: {backend}")
    return StoreConfig(backend=backend, path=data.get("path"))


def _parse_monitoring(data: dict[str, Any]) -> MonitoringConfig:
    return MonitoringConfig(
        audit_log_path=str(data.get("audit_log_path", "runtime/audit.log")),
    )


def _parse_runtime(data: dict[str, Any]) -> RuntimeConfig:
    return RuntimeConfig(
        health_check_interval_seconds=float(data.get("health_check_interval_seconds", 10.0)),
        status_interval_seconds=float(data.get("status_interval_seconds", 5.0)),
        status_path=str(data.get("status_path", "runtime/status.json")),
    )


def serialize_config(config: AppConfig) -> dict[str, Any]:
    payload = asdict(config)
    payload["feed"]["token"] = "***" if config.feed.token else ""
    return payload
