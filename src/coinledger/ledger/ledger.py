"""Account ledger: balances, positions, trade and notification logs."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from coinledger.ledger import margin, paths
from coinledger.ledger.errors import (
    DemoExpired,
    InsufficientHoldings,
    InsufficientMargin,
    InvalidOrder,
    LedgerError,
    StoreWriteFailed,
    UnknownInstrument,
)
from coinledger.ledger.models import (
    AccountType,
    Balances,
    Notification,
    NotificationKind,
    OrderResult,
    Position,
    Side,
    Trade,
    UserProfile,
)
from coinledger.ledger.store import AccountStore

Clock = Callable[[], datetime]

DECLINABLE = (DemoExpired, InsufficientMargin, InsufficientHoldings, UnknownInstrument, InvalidOrder)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def read_balances(store: AccountStore, uid: str) -> Balances:
    entries = store.children(paths.balance_root(uid))
    if entries:
        return Balances(
            demo=float(entries.get(AccountType.DEMO.value) or 0.0),
            live=float(entries.get(AccountType.LIVE.value) or 0.0),
        )
    legacy = store.get(paths.balance_root(uid))
    if isinstance(legacy, dict):
        if isinstance(legacy.get("usd"), (int, float)):
            return Balances(demo=float(legacy["usd"]), live=0.0)
        return Balances(demo=float(legacy.get("demo") or 0.0), live=float(legacy.get("live") or 0.0))
    return Balances()


def read_positions(store: AccountStore, uid: str, account: AccountType) -> dict[str, Position]:
    positions: dict[str, Position] = {}
    for symbol, record in store.children(paths.assets_prefix(uid, account)).items():
        position = Position.from_record(record)
        if position.quantity > 0:
            positions[symbol] = position
    return positions


@dataclass(frozen=True)
class AccountSnapshot:
    user_id: str
    account: AccountType
    balance: float
    positions: dict[str, Position]
    trades: list[Trade]
    notifications: list[Notification]


class AccountLedger:
    """Owns every balance, position and log record for the accounts it manages.

    ``execute_order`` and ``deposit`` hold a lock per (user, account type) across
    the precondition checks and the commit, and commit through a single atomic
    store update. In-memory state is never updated ahead of the store.
    """

    def __init__(
        self,
        store: AccountStore,
        instruments: Optional[Iterable[str]] = None,
        min_leverage: float = 1.0,
        max_leverage: float = 200.0,
        dust_epsilon: float = 1e-6,
        audit_log: Optional[object] = None,
        monitor: Optional[object] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        if min_leverage <= 0 or max_leverage < min_leverage:
            raise ValueError("Invalid leverage range")
        self.store = store
        self.instruments = set(instruments) if instruments is not None else None
        self.min_leverage = min_leverage
        self.max_leverage = max_leverage
        self.dust_epsilon = dust_epsilon
        self._audit_log = audit_log
        self._monitor = monitor
        self._clock = clock or _utcnow
        self._locks: dict[tuple[str, AccountType], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    def _account_lock(self, user_id: str, account: AccountType) -> threading.Lock:
        key = (user_id, account)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        record = self.store.get(paths.profile_path(user_id))
        if not record:
            return None
        return UserProfile.from_record(record)

    def get_balances(self, user_id: str) -> Balances:
        return read_balances(self.store, user_id)

    def get_balance(self, user_id: str, account: AccountType | str) -> float:
        return self.get_balances(user_id).for_account(AccountType(account))

    def get_positions(self, user_id: str, account: AccountType | str) -> dict[str, Position]:
        return read_positions(self.store, user_id, AccountType(account))

    def get_position(self, user_id: str, account: AccountType | str, symbol: str) -> Optional[Position]:
        record = self.store.get(paths.position_path(user_id, AccountType(account), symbol))
        if not record:
            return None
        position = Position.from_record(record)
        return position if position.quantity > 0 else None

    def get_trades(self, user_id: str, account: AccountType | str | None = None) -> list[Trade]:
        trades = [Trade.from_record(record) for record in self.store.children(paths.trades_prefix(user_id)).values()]
        if account is not None:
            trades = [trade for trade in trades if trade.account == AccountType(account)]
        return sorted(trades, key=lambda trade: (trade.timestamp, trade.id))

    def get_notifications(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        notifications = [
            Notification.from_record(record)
            for record in self.store.children(paths.notifications_prefix(user_id)).values()
        ]
        if unread_only:
            notifications = [item for item in notifications if not item.read]
        return sorted(notifications, key=lambda item: (item.timestamp, item.id))

    def snapshot(self, user_id: str, account: AccountType | str) -> AccountSnapshot:
        account = AccountType(account)
        with self.store.locked():
            return AccountSnapshot(
                user_id=user_id,
                account=account,
                balance=self.get_balance(user_id, account),
                positions=self.get_positions(user_id, account),
                trades=self.get_trades(user_id, account),
                notifications=self.get_notifications(user_id),
            )

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def execute_order(
        self,
        user_id: str,
        account: AccountType | str,
        symbol: str,
        side: Side | str,
        quantity: float,
        price: float,
        leverage: float = 1.0,
    ) -> OrderResult:
        account = AccountType(account)
        side = Side(side)
        now = self._clock()

        with self._account_lock(user_id, account):
            try:
                self._check_demo(user_id, account, now)
                self._validate_order(symbol, quantity, price, leverage)
                balance = self.get_balance(user_id, account)
                existing = self.get_position(user_id, account, symbol)
                if side == Side.BUY:
                    changes, new_balance, position = self._plan_buy(
                        user_id, account, symbol, quantity, price, leverage, balance, existing
                    )
                else:
                    changes, new_balance, position = self._plan_sell(
                        user_id, account, symbol, quantity, price, balance, existing
                    )
            except DECLINABLE as exc:
                return self._decline(exc, user_id, account, symbol, side)

            trade = Trade(
                id=self.store.new_id(),
                side=side,
                symbol=symbol,
                amount=quantity * price,
                quantity=quantity,
                price=price,
                timestamp=now,
                account=account,
                leverage=leverage,
            )
            if side == Side.BUY:
                message = f"Bought {quantity:.4f} {symbol} ({leverage:g}x Lev)"
            else:
                message = f"Sold {quantity:.4f} {symbol}"
            notification = Notification(
                id=self.store.new_id(),
                kind=NotificationKind.ORDER,
                title="Order Executed",
                message=message,
                timestamp=now,
            )
            changes[f"{paths.trades_prefix(user_id)}/{trade.id}"] = trade.to_record()
            changes[f"{paths.notifications_prefix(user_id)}/{notification.id}"] = notification.to_record()
            self._commit(changes, "execute_order", user_id, account)

        self._log(
            "order_executed",
            {
                "user_id": user_id,
                "account": account.value,
                "trade_id": trade.id,
                "symbol": symbol,
                "side": side.value,
                "quantity": quantity,
                "price": price,
                "leverage": leverage,
                "balance": new_balance,
            },
        )
        return OrderResult(
            accepted=True,
            reason=message,
            trade=trade,
            balance=new_balance,
            position=position,
        )

    def deposit(self, user_id: str, amount: float) -> float:
        """Credit the live balance. No payment processing happens here."""
        if not _positive(amount):
            raise InvalidOrder(f"Deposit amount must be positive, got {amount}")
        now = self._clock()
        # The store lock keeps a concurrent demo commit from landing between
        # the legacy read and its migration.
        with self._account_lock(user_id, AccountType.LIVE), self.store.locked():
            balances = self.get_balances(user_id)
            new_balance = balances.live + amount
            notification = Notification(
                id=self.store.new_id(),
                kind=NotificationKind.SYSTEM,
                title="Deposit Successful",
                message=f"Added ${amount:.2f} to Live Account",
                timestamp=now,
            )
            changes: dict[str, Any] = {
                paths.balance_path(user_id, AccountType.LIVE): new_balance,
                f"{paths.notifications_prefix(user_id)}/{notification.id}": notification.to_record(),
            }
            if not self.store.children(paths.balance_root(user_id)):
                # Legacy single-record balance is rewritten into per-account keys.
                changes[paths.balance_root(user_id)] = None
                changes[paths.balance_path(user_id, AccountType.DEMO)] = balances.demo
            self._commit(changes, "deposit", user_id, AccountType.LIVE)
        self._log("deposit", {"user_id": user_id, "amount": amount, "balance": new_balance})
        return new_balance

    def mark_notification_read(self, user_id: str, notification_id: str) -> bool:
        path = f"{paths.notifications_prefix(user_id)}/{notification_id}"
        with self.store.locked():
            record = self.store.get(path)
            if record is None:
                return False
            if record.get("read"):
                return True
            record["read"] = True
            self.store.set(path, record)
        return True

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _validate_order(self, symbol: str, quantity: float, price: float, leverage: float) -> None:
        if self.instruments is not None and symbol not in self.instruments:
            raise UnknownInstrument(symbol)
        if not _positive(quantity):
            raise InvalidOrder(f"Quantity must be positive, got {quantity}")
        if not _positive(price):
            raise InvalidOrder(f"Price must be positive, got {price}")
        if not math.isfinite(leverage) or not self.min_leverage <= leverage <= self.max_leverage:
            raise InvalidOrder(
                f"Leverage {leverage:g}x outside allowed range {self.min_leverage:g}x-{self.max_leverage:g}x"
            )

    def _check_demo(self, user_id: str, account: AccountType, now: datetime) -> None:
        if account != AccountType.DEMO:
            return
        profile = self.get_profile(user_id)
        if profile is not None and profile.demo_expired(now):
            raise DemoExpired(
                f"Demo account expired at {profile.demo_expires_at.isoformat()}; deposit funds to trade live"
            )

    def _plan_buy(
        self,
        user_id: str,
        account: AccountType,
        symbol: str,
        quantity: float,
        price: float,
        leverage: float,
        balance: float,
        existing: Optional[Position],
    ) -> tuple[dict[str, Any], float, Position]:
        fill = margin.apply_buy(existing, quantity, price, leverage)
        if fill.margin > balance:
            raise InsufficientMargin(required=fill.margin, available=balance)
        position = Position(symbol=symbol, quantity=fill.quantity, avg_price=fill.avg_price, borrowed=fill.borrowed)
        new_balance = balance - fill.margin
        changes: dict[str, Any] = {
            paths.balance_path(user_id, account): new_balance,
            paths.position_path(user_id, account, symbol): position.to_record(),
        }
        return changes, new_balance, position

    def _plan_sell(
        self,
        user_id: str,
        account: AccountType,
        symbol: str,
        quantity: float,
        price: float,
        balance: float,
        existing: Optional[Position],
    ) -> tuple[dict[str, Any], float, Optional[Position]]:
        held = existing.quantity if existing else 0.0
        if existing is None or existing.quantity < quantity:
            raise InsufficientHoldings(symbol, requested=quantity, held=held)
        fill = margin.apply_sell(existing, quantity, price, self.dust_epsilon)
        new_balance = balance + fill.net_proceeds
        if new_balance < 0:
            # Proceeds no longer cover the debt being repaid.
            raise InsufficientMargin(required=-fill.net_proceeds, available=balance)
        position: Optional[Position] = None
        if not fill.closed:
            position = Position(symbol=symbol, quantity=fill.quantity, avg_price=existing.avg_price, borrowed=fill.borrowed)
        changes: dict[str, Any] = {
            paths.balance_path(user_id, account): new_balance,
            paths.position_path(user_id, account, symbol): position.to_record() if position else None,
        }
        return changes, new_balance, position

    def _commit(self, changes: dict[str, Any], operation: str, user_id: str, account: AccountType) -> None:
        try:
            self.store.update(changes)
        except StoreWriteFailed as exc:
            self._log(
                "store_write_failed",
                {"operation": operation, "user_id": user_id, "account": account.value, "error": str(exc)},
            )
            if self._monitor is not None:
                self._monitor.store_write_failed(f"{operation} for {user_id}/{account.value}: {exc}")
            raise

    def _decline(self, exc: LedgerError, user_id: str, account: AccountType, symbol: str, side: Side) -> OrderResult:
        required = getattr(exc, "required", None)
        available = getattr(exc, "available", None)
        if isinstance(exc, InsufficientHoldings):
            required, available = exc.requested, exc.held
        self._log(
            "order_declined",
            {
                "user_id": user_id,
                "account": account.value,
                "symbol": symbol,
                "side": side.value,
                "code": exc.code,
                "reason": exc.message,
            },
        )
        if isinstance(exc, DemoExpired) and self._monitor is not None:
            self._monitor.demo_expired(user_id)
        return OrderResult(
            accepted=False,
            reason=exc.message,
            code=exc.code,
            required=required,
            available=available,
        )
