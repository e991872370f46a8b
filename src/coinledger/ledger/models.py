"""Ledger domain models and their store encodings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class AccountType(str, Enum):
    DEMO = "demo"
    LIVE = "live"


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class NotificationKind(str, Enum):
    ORDER = "order"
    ALERT = "alert"
    KYC = "kyc"
    SYSTEM = "system"


class KycStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def parse_dt(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if value.endswith("Z"):
        value = value.replace("Z", "+00:00")
    return datetime.fromisoformat(value)


def serialize_dt(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


@dataclass(frozen=True)
class Position:
    symbol: str
    quantity: float
    avg_price: float
    borrowed: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.avg_price

    def to_record(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "qty": self.quantity,
            "avgPrice": self.avg_price,
            "borrowed": self.borrowed,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Position":
        return cls(
            symbol=str(record["symbol"]),
            quantity=float(record.get("qty", 0.0)),
            avg_price=float(record.get("avgPrice", 0.0)),
            borrowed=float(record.get("borrowed") or 0.0),
        )


@dataclass(frozen=True)
class Trade:
    id: str
    side: Side
    symbol: str
    amount: float
    quantity: float
    price: float
    timestamp: datetime
    account: AccountType
    leverage: float = 1.0
    status: str = "executed"

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.side.value,
            "symbol": self.symbol,
            "amount": self.amount,
            "qty": self.quantity,
            "price": self.price,
            "timestamp": serialize_dt(self.timestamp),
            "account": self.account.value,
            "leverage": self.leverage,
            "status": self.status,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Trade":
        return cls(
            id=str(record["id"]),
            side=Side(record["type"]),
            symbol=str(record["symbol"]),
            amount=float(record["amount"]),
            quantity=float(record["qty"]),
            price=float(record["price"]),
            timestamp=parse_dt(record["timestamp"]),
            account=AccountType(record.get("account", AccountType.DEMO.value)),
            leverage=float(record.get("leverage") or 1.0),
            status=str(record.get("status", "executed")),
        )


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    title: str
    message: str
    timestamp: datetime
    read: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "timestamp": serialize_dt(self.timestamp),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Notification":
        return cls(
            id=str(record["id"]),
            kind=NotificationKind(record.get("type", NotificationKind.SYSTEM.value)),
            title=str(record.get("title", "")),
            message=str(record.get("message", "")),
            timestamp=parse_dt(record["timestamp"]),
            read=bool(record.get("read", False)),
        )


@dataclass(frozen=True)
class UserProfile:
    uid: str
    name: str
    email: str
    trading_id: str
    avatar: str
    kyc_status: KycStatus
    created_at: datetime
    demo_expires_at: Optional[datetime] = None

    def demo_expired(self, now: datetime) -> bool:
        if self.demo_expires_at is None:
            return False
        return now > self.demo_expires_at

    def to_record(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "tradingId": self.trading_id,
            "avatar": self.avatar,
            "kycStatus": self.kyc_status.value,
            "createdAt": serialize_dt(self.created_at),
            "demoExpiresAt": serialize_dt(self.demo_expires_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "UserProfile":
        return cls(
            uid=str(record["uid"]),
            name=str(record.get("name", "Trader")),
            email=str(record.get("email", "")),
            trading_id=str(record.get("tradingId", "")),
            avatar=str(record.get("avatar", "")),
            kyc_status=KycStatus(record.get("kycStatus", KycStatus.NONE.value)),
            created_at=parse_dt(record["createdAt"]),
            demo_expires_at=parse_dt(record.get("demoExpiresAt")),
        )


@dataclass(frozen=True)
class Balances:
    demo: float = 0.0
    live: float = 0.0

    def for_account(self, account: AccountType) -> float:
        return self.demo if account == AccountType.DEMO else self.live


@dataclass(frozen=True)
class OrderResult:
    accepted: bool
    reason: str
    code: Optional[str] = None
    trade: Optional[Trade] = None
    balance: Optional[float] = None
    position: Optional[Position] = None
    required: Optional[float] = None
    available: Optional[float] = None
