"""Monitoring and alert routing."""

from __future__ import annotations

from dataclasses import dataclass

from coinledger.monitoring.notifier import Notifier


@dataclass
class Monitor:
    notifier: Notifier

    def feed_disconnect(self, reason: str) -> None:
        self.notifier.notify("FEED_DISCONNECT", reason)

    def feed_restarted(self, attempt: int) -> None:
        self.notifier.notify("FEED_RESTART", f"stream restarted (attempt {attempt})")

    def store_write_failed(self, reason: str) -> None:
        self.notifier.notify("STORE_WRITE", reason)

    def demo_expired(self, user_id: str) -> None:
        self.notifier.notify("DEMO_EXPIRED", f"order rejected for expired demo account {user_id}")
