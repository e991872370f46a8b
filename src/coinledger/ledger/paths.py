"""Store path layout for user ledgers."""

from __future__ import annotations

from coinledger.ledger.models import AccountType


def balance_root(uid: str) -> str:
    return f"portfolio/{uid}/balance"


def balance_path(uid: str, account: AccountType) -> str:
    return f"portfolio/{uid}/balance/{account.value}"


def assets_prefix(uid: str, account: AccountType) -> str:
    return f"portfolio/{uid}/assets/{account.value}"


def position_path(uid: str, account: AccountType, symbol: str) -> str:
    return f"portfolio/{uid}/assets/{account.value}/{symbol}"


def trades_prefix(uid: str) -> str:
    return f"trades/{uid}"


def notifications_prefix(uid: str) -> str:
    return f"notifications/{uid}"


def profile_path(uid: str) -> str:
    return f"users/{uid}/profile"


def watchlist_path(uid: str) -> str:
    return f"users/{uid}/watchlist"
