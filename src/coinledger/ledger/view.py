"""Push-refreshed read model of one user's active account."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from coinledger.ledger import paths
from coinledger.ledger.ledger import read_balances, read_positions
from coinledger.ledger.models import AccountType, Balances, Notification, Position, Trade
from coinledger.ledger.store import AccountStore, is_under


class LedgerView:
    """Mirrors balances, positions, trades and notifications for one user.

    Refreshes only from store pushes, so writes made by other sessions of the
    same user show up here as well. Each commit is applied under one lock, so
    readers never see a balance change without its position change. The
    account type is an explicit selector.
    """

    def __init__(self, store: AccountStore, user_id: str, account: AccountType | str = AccountType.DEMO) -> None:
        self.store = store
        self.user_id = user_id
        self._account = AccountType(account)
        self._lock = threading.Lock()
        self._balances = Balances()
        self._positions: dict[str, Position] = {}
        self._trades: dict[str, Trade] = {}
        self._notifications: dict[str, Notification] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: list[Callable[[], None]] = []
        self._attach()

    @property
    def account(self) -> AccountType:
        return self._account

    def _attach(self) -> None:
        with self.store.locked():
            self._reload()
            self._unsubscribe = self.store.subscribe("", self._on_commit)

    def _reload(self) -> None:
        uid = self.user_id
        balances = read_balances(self.store, uid)
        positions = read_positions(self.store, uid, self._account)
        trades = {key: Trade.from_record(value) for key, value in self.store.children(paths.trades_prefix(uid)).items()}
        notifications = {
            key: Notification.from_record(value)
            for key, value in self.store.children(paths.notifications_prefix(uid)).items()
        }
        with self._lock:
            self._balances = balances
            self._positions = positions
            self._trades = trades
            self._notifications = notifications

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def switch_account(self, account: AccountType | str) -> None:
        account = AccountType(account)
        if account == self._account:
            return
        self.detach()
        self._account = account
        self._attach()
        self._fire()

    def on_change(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _fire(self) -> None:
        for callback in list(self._listeners):
            callback()

    def _on_commit(self, changes: dict[str, Any]) -> None:
        uid = self.user_id
        assets = paths.assets_prefix(uid, self._account)
        trades = paths.trades_prefix(uid)
        notifications = paths.notifications_prefix(uid)

        touched = False
        balances: Optional[Balances] = None
        if any(is_under(path, paths.balance_root(uid)) for path in changes):
            balances = read_balances(self.store, uid)

        with self._lock:
            if balances is not None:
                self._balances = balances
                touched = True
            for path, record in changes.items():
                if is_under(path, assets) and path != assets:
                    touched = True
                    symbol = path[len(assets) + 1 :]
                    position = Position.from_record(record) if record else None
                    if position is not None and position.quantity > 0:
                        self._positions[symbol] = position
                    else:
                        self._positions.pop(symbol, None)
                elif is_under(path, trades) and path != trades:
                    touched = True
                    if record:
                        self._trades[path[len(trades) + 1 :]] = Trade.from_record(record)
                elif is_under(path, notifications) and path != notifications:
                    touched = True
                    key = path[len(notifications) + 1 :]
                    if record:
                        self._notifications[key] = Notification.from_record(record)
                    else:
                        self._notifications.pop(key, None)
        if touched:
            self._fire()

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    @property
    def balance(self) -> float:
        with self._lock:
            return self._balances.for_account(self._account)

    @property
    def balances(self) -> Balances:
        with self._lock:
            return self._balances

    @property
    def positions(self) -> dict[str, Position]:
        with self._lock:
            return dict(self._positions)

    def position(self, symbol: str) -> Optional[Position]:
        with self._lock:
            return self._positions.get(symbol)

    @property
    def trades(self) -> list[Trade]:
        with self._lock:
            trades = [trade for trade in self._trades.values() if trade.account == self._account]
        return sorted(trades, key=lambda trade: (trade.timestamp, trade.id))

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            items = list(self._notifications.values())
        return sorted(items, key=lambda item: (item.timestamp, item.id))

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for item in self._notifications.values() if not item.read)
