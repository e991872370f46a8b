"""Helpers to produce portfolio status snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from coinledger.ledger import margin
from coinledger.ledger.ledger import AccountLedger
from coinledger.ledger.models import AccountType
from coinledger.market.feed import MarketFeed
from coinledger.monitoring.status import PortfolioStatus


def build_portfolio_status(
    ledger: AccountLedger,
    feed: MarketFeed,
    user_id: str,
    account: AccountType | str,
    leverage: float = 1.0,
    now: Optional[datetime] = None,
) -> PortfolioStatus:
    account = AccountType(account)
    snapshot = ledger.snapshot(user_id, account)
    prices = feed.prices()
    profile = ledger.get_profile(user_id)
    return PortfolioStatus(
        now=now or datetime.now(timezone.utc),
        user_id=user_id,
        account=account,
        balance=snapshot.balance,
        net_worth=margin.total_net_worth(snapshot.balance, snapshot.positions.values(), prices),
        buying_power=margin.buying_power(snapshot.balance, leverage),
        positions=margin.value_portfolio(snapshot.positions.values(), prices),
        unread_notifications=sum(1 for item in snapshot.notifications if not item.read),
        feed_state=feed.stream_state.value,
        demo_expires_at=profile.demo_expires_at if profile and account == AccountType.DEMO else None,
    )
