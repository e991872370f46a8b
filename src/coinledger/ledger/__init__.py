"""Margin-trading ledger."""

from coinledger.ledger.errors import (
    DemoExpired,
    InsufficientHoldings,
    InsufficientMargin,
    InvalidOrder,
    LedgerError,
    StoreWriteFailed,
    UnknownInstrument,
    UpstreamUnavailable,
)
from coinledger.ledger.ledger import AccountLedger, AccountSnapshot
from coinledger.ledger.models import (
    AccountType,
    Balances,
    KycStatus,
    Notification,
    NotificationKind,
    OrderResult,
    Position,
    Side,
    Trade,
    UserProfile,
)
from coinledger.ledger.profiles import ProfileService
from coinledger.ledger.store import AccountStore, InMemoryAccountStore, SqliteAccountStore, create_store
from coinledger.ledger.view import LedgerView
from coinledger.ledger.watchlist import WatchlistStore

__all__ = [
    "AccountLedger",
    "AccountSnapshot",
    "AccountStore",
    "AccountType",
    "Balances",
    "DemoExpired",
    "InMemoryAccountStore",
    "InsufficientHoldings",
    "InsufficientMargin",
    "InvalidOrder",
    "KycStatus",
    "LedgerError",
    "LedgerView",
    "Notification",
    "NotificationKind",
    "OrderResult",
    "Position",
    "ProfileService",
    "Side",
    "SqliteAccountStore",
    "StoreWriteFailed",
    "Trade",
    "UnknownInstrument",
    "UpstreamUnavailable",
    "UserProfile",
    "WatchlistStore",
    "create_store",
]
