"""Runtime exports."""

from coinledger.runtime.service import FeedSupervisor, ServiceConfig
from coinledger.runtime.status_store import read_portfolio_status, write_portfolio_status

__all__ = [
    "FeedSupervisor",
    "ServiceConfig",
    "read_portfolio_status",
    "write_portfolio_status",
]
