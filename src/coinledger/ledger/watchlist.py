"""Per-user ordered set of watched symbols."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from coinledger.ledger import paths
from coinledger.ledger.store import AccountStore


class WatchlistStore:
    def __init__(self, store: AccountStore, default: Optional[Iterable[str]] = None) -> None:
        self.store = store
        self.default = list(default) if default is not None else ["BTC", "ETH", "SOL"]
        self._lock = threading.Lock()

    def get(self, uid: str) -> list[str]:
        symbols = self.store.get(paths.watchlist_path(uid))
        if symbols is None:
            return list(self.default)
        return list(symbols)

    def add(self, uid: str, symbol: str) -> list[str]:
        with self._lock:
            symbols = self.get(uid)
            if symbol in symbols:
                return symbols
            symbols.append(symbol)
            self.store.set(paths.watchlist_path(uid), symbols)
            return symbols

    def remove(self, uid: str, symbol: str) -> list[str]:
        with self._lock:
            symbols = [item for item in self.get(uid) if item != symbol]
            self.store.set(paths.watchlist_path(uid), symbols)
            return symbols

    def contains(self, uid: str, symbol: str) -> bool:
        return symbol in self.get(uid)

    def subscribe(self, uid: str, callback: Callable[[list[str]], None]) -> Callable[[], None]:
        path = paths.watchlist_path(uid)

        def _on_change(changes: dict) -> None:
            value = changes.get(path)
            callback(list(value) if value is not None else list(self.default))

        return self.store.subscribe(path, _on_change)
