"""Margin, cost-basis and PnL arithmetic.

All functions are pure. Positions are valued at the supplied current price;
the weighted-average entry price is cost-basis accounting, never marked to
market.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from coinledger.ledger.models import Position


@dataclass(frozen=True)
class BuyFill:
    notional: float
    margin: float
    borrowed_delta: float
    quantity: float
    avg_price: float
    borrowed: float


@dataclass(frozen=True)
class SellFill:
    notional: float
    fraction: float
    borrowed_repaid: float
    net_proceeds: float
    quantity: float
    borrowed: float
    closed: bool


@dataclass(frozen=True)
class PositionValuation:
    symbol: str
    quantity: float
    avg_price: float
    borrowed: float
    current_price: float
    value: float
    pnl: float
    pnl_percent: Optional[float]
    net_equity: float


def margin_required(notional: float, leverage: float) -> float:
    if leverage <= 0:
        raise ValueError("leverage must be positive")
    return notional / leverage


def position_value(position: Position, current_price: float) -> float:
    return position.quantity * current_price


def unrealized_pnl(position: Position, current_price: float) -> float:
    return position_value(position, current_price) - position.cost_basis


def pnl_percent(position: Position, current_price: float) -> Optional[float]:
    """Unrealized PnL as a percentage of cost basis, None when the basis is zero."""
    basis = position.cost_basis
    if basis == 0:
        return None
    return unrealized_pnl(position, current_price) / basis * 100


def net_equity(position: Position, current_price: float) -> float:
    return position_value(position, current_price) - position.borrowed


def total_net_worth(balance: float, positions: Iterable[Position], prices: Mapping[str, float]) -> float:
    total = balance
    for position in positions:
        total += net_equity(position, prices.get(position.symbol, 0.0))
    return total


def buying_power(balance: float, leverage: float) -> float:
    return balance * leverage


def apply_buy(existing: Optional[Position], quantity: float, price: float, leverage: float) -> BuyFill:
    notional = quantity * price
    margin = margin_required(notional, leverage)
    borrowed_delta = notional - margin

    old_quantity = existing.quantity if existing else 0.0
    old_cost = existing.cost_basis if existing else 0.0
    old_borrowed = existing.borrowed if existing else 0.0

    new_quantity = old_quantity + quantity
    return BuyFill(
        notional=notional,
        margin=margin,
        borrowed_delta=borrowed_delta,
        quantity=new_quantity,
        avg_price=(old_cost + notional) / new_quantity,
        borrowed=old_borrowed + borrowed_delta,
    )


def apply_sell(existing: Position, quantity: float, price: float, dust_epsilon: float = 1e-6) -> SellFill:
    """Debt is repaid in proportion to the fraction of the position sold."""
    notional = quantity * price
    fraction = quantity / existing.quantity
    borrowed_repaid = existing.borrowed * fraction
    remaining = existing.quantity - quantity
    closed = remaining <= dust_epsilon
    return SellFill(
        notional=notional,
        fraction=fraction,
        borrowed_repaid=borrowed_repaid,
        net_proceeds=notional - borrowed_repaid,
        quantity=0.0 if closed else remaining,
        borrowed=0.0 if closed else existing.borrowed - borrowed_repaid,
        closed=closed,
    )


def value_position(position: Position, current_price: float) -> PositionValuation:
    return PositionValuation(
        symbol=position.symbol,
        quantity=position.quantity,
        avg_price=position.avg_price,
        borrowed=position.borrowed,
        current_price=current_price,
        value=position_value(position, current_price),
        pnl=unrealized_pnl(position, current_price),
        pnl_percent=pnl_percent(position, current_price),
        net_equity=net_equity(position, current_price),
    )


def value_portfolio(positions: Iterable[Position], prices: Mapping[str, float]) -> list[PositionValuation]:
    valuations = [
        value_position(position, prices.get(position.symbol, 0.0))
        for position in positions
        if position.quantity > 0
    ]
    return sorted(valuations, key=lambda item: item.value, reverse=True)


def max_order_amount(
    balance: float,
    leverage: float,
    percent: float,
    held_quantity: float = 0.0,
    selling: bool = False,
) -> float:
    """Quote amount for a buy, or base quantity for a sell, at a percentage of the maximum."""
    fraction = max(0.0, min(percent, 100.0)) / 100.0
    if selling:
        return held_quantity * fraction
    return buying_power(balance, leverage) * fraction
