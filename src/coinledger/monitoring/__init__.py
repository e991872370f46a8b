"""Monitoring exports."""

from coinledger.monitoring.audit import AuditLog
from coinledger.monitoring.monitor import Monitor
from coinledger.monitoring.notifier import LogNotifier, Notifier
from coinledger.monitoring.runtime import build_portfolio_status
from coinledger.monitoring.status import PortfolioStatus

__all__ = [
    "AuditLog",
    "LogNotifier",
    "Monitor",
    "Notifier",
    "PortfolioStatus",
    "build_portfolio_status",
]
