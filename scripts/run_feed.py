from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path

from coinledger.config import compute_config_hash, freeze_config, load_config, resolve_token, verify_config_lock
from coinledger.ledger import AccountLedger, ProfileService, create_store
from coinledger.market import MarketFeed, QuoteClient
from coinledger.monitoring import AuditLog, LogNotifier, Monitor, build_portfolio_status
from coinledger.runtime import FeedSupervisor, ServiceConfig


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the market feed with stream supervision and status snapshots.")
    parser.add_argument("--config", default="configs/coinledger.yaml")
    parser.add_argument("--user", default="local", help="User whose portfolio status is written")
    parser.add_argument("--account", default="demo", choices=["demo", "live"])
    parser.add_argument("--leverage", type=float, default=1.0)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config_path = Path(args.config)
    config = load_config(config_path)
    lock_path = freeze_config(config_path)
    if not verify_config_lock(config_path, lock_path):
        raise RuntimeError("Config lock mismatch; run freeze_config first")

    audit = AuditLog(Path(config.monitoring.audit_log_path), config_hash=compute_config_hash(config_path))
    audit.log("run_start", {"config": str(config_path), "lock": str(lock_path)})
    monitor = Monitor(LogNotifier())

    store = create_store(config.store.backend, config.store.path)
    ledger = AccountLedger(
        store,
        instruments=config.instruments,
        min_leverage=config.ledger.min_leverage,
        max_leverage=config.ledger.max_leverage,
        dust_epsilon=config.ledger.dust_epsilon,
        audit_log=audit,
        monitor=monitor,
    )
    ProfileService(
        store,
        demo_duration_days=config.ledger.demo_duration_days,
        demo_initial_balance=config.ledger.demo_initial_balance,
        live_initial_balance=config.ledger.live_initial_balance,
    ).ensure_profile(args.user)

    token = resolve_token(config.feed)
    quotes = QuoteClient(
        token,
        base_url=config.feed.quote_url,
        timeout=config.feed.request_timeout_seconds,
        max_retries=config.feed.max_retries,
        backoff_base=config.feed.backoff_base,
    )
    feed = MarketFeed(
        quotes,
        config.instruments,
        stream_url=config.feed.stream_url,
        token=token,
        history_capacity=config.feed.history_capacity,
        seed_samples=config.feed.seed_samples,
        seed_interval_seconds=config.feed.seed_interval_seconds,
        seed_jitter_pct=config.feed.seed_jitter_pct,
        reconnect=config.feed.reconnect,
        audit_log=audit,
    )
    feed.initialize()

    supervisor = FeedSupervisor(
        feed,
        monitor=monitor,
        config=ServiceConfig(
            health_check_interval_seconds=config.runtime.health_check_interval_seconds,
            status_interval_seconds=config.runtime.status_interval_seconds,
            status_path=config.runtime.status_path,
        ),
        status_source=lambda: build_portfolio_status(ledger, feed, args.user, args.account, leverage=args.leverage),
    )

    print(f"Feed started ({len(config.instruments)} instruments, store={config.store.backend})")
    stop_event = threading.Event()
    try:
        supervisor.run_forever(stop_event)
    except KeyboardInterrupt:
        audit.log("run_stop", {"reason": "keyboard_interrupt"})
        print("Feed stopped")
    finally:
        feed.close()


if __name__ == "__main__":
    main()
