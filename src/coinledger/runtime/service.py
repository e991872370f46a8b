"""Feed supervision and periodic status snapshots."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Event
from typing import Callable, Optional

from coinledger.market.feed import MarketFeed
from coinledger.monitoring.monitor import Monitor
from coinledger.monitoring.status import PortfolioStatus
from coinledger.runtime.status_store import write_portfolio_status

log = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    health_check_interval_seconds: float = 10.0
    status_interval_seconds: float = 5.0
    status_path: Optional[str] = None
    poll_seconds: float = 0.2


class FeedSupervisor:
    """Restarts the price stream when it reports closed or errored."""

    def __init__(
        self,
        feed: MarketFeed,
        monitor: Optional[Monitor] = None,
        config: Optional[ServiceConfig] = None,
        status_source: Optional[Callable[[], PortfolioStatus]] = None,
    ) -> None:
        self.feed = feed
        self.monitor = monitor
        self.config = config or ServiceConfig()
        self.status_source = status_source
        self.restarts = 0

    def check_stream(self) -> bool:
        """Return True when the stream is alive; restart it otherwise."""
        if self.feed.closed:
            return False
        state = self.feed.stream_state
        if not state.is_down:
            return True
        reason = f"stream {state.value}"
        if self.feed.stream_detail:
            reason = f"{reason}: {self.feed.stream_detail}"
        log.warning("Price stream down (%s), restarting", reason)
        if self.monitor is not None:
            self.monitor.feed_disconnect(reason)
        self.feed.restart_stream()
        self.restarts += 1
        if self.monitor is not None:
            self.monitor.feed_restarted(self.restarts)
        return False

    def write_status(self) -> Optional[PortfolioStatus]:
        if self.status_source is None or not self.config.status_path:
            return None
        status = self.status_source()
        write_portfolio_status(self.config.status_path, status)
        return status

    def run_forever(self, stop_event: Optional[Event] = None) -> None:
        if stop_event is None:
            stop_event = Event()

        last_health = 0.0
        last_status = 0.0
        while not stop_event.is_set() and not self.feed.closed:
            now = time.monotonic()
            if now - last_health >= self.config.health_check_interval_seconds:
                self.check_stream()
                last_health = now
            if now - last_status >= self.config.status_interval_seconds:
                try:
                    self.write_status()
                except OSError:
                    log.exception("Failed to write portfolio status")
                last_status = now
            stop_event.wait(self.config.poll_seconds)
