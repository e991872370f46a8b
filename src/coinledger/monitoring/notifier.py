"""Notification backends."""

from __future__ import annotations

import logging
from dataclasses import dataclass


class Notifier:
    def notify(self, event: str, message: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class LogNotifier(Notifier):
    logger_name: str = "coinledger.alerts"

    def notify(self, event: str, message: str) -> None:
        logging.getLogger(self.logger_name).warning("%s: %s", event, message)
