"""Portfolio status reporting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from coinledger.ledger.margin import PositionValuation
from coinledger.ledger.models import AccountType


@dataclass(frozen=True)
class PortfolioStatus:
    now: datetime
    user_id: str
    account: AccountType
    balance: float
    net_worth: float
    buying_power: float
    positions: list[PositionValuation]
    unread_notifications: int
    feed_state: str
    demo_expires_at: Optional[datetime] = None
