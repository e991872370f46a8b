"""Illustrative order book around the last traded price.

Levels are synthetic and never persisted; nothing here is authoritative.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OrderBookLevel:
    price: float
    quantity: float

    @property
    def total(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderBook:
    asks: tuple[OrderBookLevel, ...]
    bids: tuple[OrderBookLevel, ...]

    @property
    def spread(self) -> float:
        if not self.asks or not self.bids:
            return 0.0
        return self.asks[-1].price - self.bids[0].price


def illustrative_order_book(
    price: float,
    depth: int = 6,
    half_spread_pct: float = 0.0005,
    step_pct: float = 0.0002,
    max_quantity: float = 2.0,
    rng: Optional[random.Random] = None,
) -> OrderBook:
    """Asks are listed highest first, bids highest first, as a ladder reads."""
    if price <= 0:
        return OrderBook(asks=(), bids=())
    rng = rng or random.Random()
    spread = price * half_spread_pct
    asks = [
        OrderBookLevel(price=price + spread + i * price * step_pct, quantity=rng.random() * max_quantity)
        for i in range(depth)
    ]
    bids = [
        OrderBookLevel(price=price - spread - i * price * step_pct, quantity=rng.random() * max_quantity)
        for i in range(depth)
    ]
    return OrderBook(asks=tuple(reversed(asks)), bids=tuple(bids))
