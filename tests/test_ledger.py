from datetime import datetime, timedelta, timezone

import pytest

from coinledger.ledger import (
    AccountLedger,
    AccountType,
    InMemoryAccountStore,
    InvalidOrder,
    NotificationKind,
    ProfileService,
    Side,
    StoreWriteFailed,
)
from coinledger.ledger import paths
from coinledger.monitoring import AuditLog, Monitor, Notifier

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def notify(self, event: str, message: str) -> None:
        self.events.append((event, message))


class FailingStore(InMemoryAccountStore):
    def _apply(self, changes):
        raise StoreWriteFailed("disk full")


def _seeded_store(demo: float = 10000.0, live: float = 0.0) -> InMemoryAccountStore:
    return InMemoryAccountStore(
        {
            "portfolio/u1/balance/demo": demo,
            "portfolio/u1/balance/live": live,
        }
    )


def _ledger(store, **kwargs) -> AccountLedger:
    return AccountLedger(store, instruments=["BTC", "ETH", "SOL"], clock=lambda: NOW, **kwargs)


def test_leveraged_buy_then_profitable_sell() -> None:
    store = _seeded_store()
    ledger = _ledger(store)

    bought = ledger.execute_order("u1", "demo", "BTC", "buy", 0.1, 50000.0, leverage=2)
    assert bought.accepted
    assert bought.balance == pytest.approx(7500.0)
    position = ledger.get_position("u1", AccountType.DEMO, "BTC")
    assert position.quantity == pytest.approx(0.1)
    assert position.avg_price == pytest.approx(50000.0)
    assert position.borrowed == pytest.approx(2500.0)
    assert bought.reason == "Bought 0.1000 BTC (2x Lev)"

    sold = ledger.execute_order("u1", "demo", "BTC", "sell", 0.1, 60000.0)
    assert sold.accepted
    assert ledger.get_balance("u1", "demo") == pytest.approx(11000.0)
    assert ledger.get_position("u1", "demo", "BTC") is None
    assert store.get(paths.position_path("u1", AccountType.DEMO, "BTC")) is None


def test_round_trip_at_same_price_restores_balance() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "ETH", Side.BUY, 2.0, 3000.0, leverage=5)
    ledger.execute_order("u1", "demo", "ETH", Side.SELL, 2.0, 3000.0)
    assert ledger.get_balance("u1", "demo") == pytest.approx(10000.0)
    assert ledger.get_positions("u1", "demo") == {}


def test_partial_buys_average_the_entry_price() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "SOL", "buy", 1.0, 100.0)
    result = ledger.execute_order("u1", "demo", "SOL", "buy", 3.0, 200.0)
    assert result.position.quantity == pytest.approx(4.0)
    assert result.position.avg_price == pytest.approx(175.0)


def test_partial_sell_keeps_entry_price_and_repays_share_of_debt() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "BTC", "buy", 1.0, 1000.0, leverage=4)
    result = ledger.execute_order("u1", "demo", "BTC", "sell", 0.5, 1200.0)
    assert result.accepted
    assert result.position.avg_price == pytest.approx(1000.0)
    assert result.position.borrowed == pytest.approx(375.0)
    # 9750 after the buy, plus 600 proceeds less 375 repaid
    assert result.balance == pytest.approx(9975.0)


def test_dust_remainder_closes_the_position() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "BTC", "buy", 1.0000005, 100.0)
    result = ledger.execute_order("u1", "demo", "BTC", "sell", 1.0, 100.0)
    assert result.accepted
    assert result.position is None
    assert ledger.get_position("u1", "demo", "BTC") is None


def test_insufficient_margin_is_declined_with_amounts(tmp_path) -> None:
    store = _seeded_store()
    audit = AuditLog(tmp_path / "audit.log")
    ledger = _ledger(store, audit_log=audit)

    result = ledger.execute_order("u1", "demo", "BTC", "buy", 1.0, 50000.0)
    assert not result.accepted
    assert result.code == "INSUFFICIENT_MARGIN"
    assert result.required == pytest.approx(50000.0)
    assert result.available == pytest.approx(10000.0)
    assert ledger.get_balance("u1", "demo") == 10000.0
    assert ledger.get_trades("u1") == []
    assert [event["event"] for event in audit.events()] == ["order_declined"]


def test_sell_more_than_held_is_declined() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "ETH", "buy", 1.0, 100.0)
    result = ledger.execute_order("u1", "demo", "ETH", "sell", 1.5, 100.0)
    assert not result.accepted
    assert result.code == "INSUFFICIENT_HOLDINGS"
    assert result.required == 1.5
    assert result.available == 1.0

    nothing = ledger.execute_order("u1", "demo", "SOL", "sell", 1.0, 100.0)
    assert nothing.code == "INSUFFICIENT_HOLDINGS"
    assert nothing.available == 0.0


def test_sell_that_cannot_repay_debt_is_declined() -> None:
    ledger = _ledger(_seeded_store(demo=10.0))
    ledger.execute_order("u1", "demo", "BTC", "buy", 1.0, 100.0, leverage=10)
    assert ledger.get_balance("u1", "demo") == pytest.approx(0.0)

    result = ledger.execute_order("u1", "demo", "BTC", "sell", 1.0, 50.0)
    assert not result.accepted
    assert result.code == "INSUFFICIENT_MARGIN"
    assert result.required == pytest.approx(40.0)
    assert ledger.get_position("u1", "demo", "BTC") is not None


@pytest.mark.parametrize(
    "symbol, quantity, price, leverage, code",
    [
        ("DOGE", 1.0, 1.0, 1.0, "UNKNOWN_INSTRUMENT"),
        ("BTC", 0.0, 1.0, 1.0, "INVALID_ORDER"),
        ("BTC", 1.0, -5.0, 1.0, "INVALID_ORDER"),
        ("BTC", 1.0, 1.0, 0.5, "INVALID_ORDER"),
        ("BTC", 1.0, 1.0, 500.0, "INVALID_ORDER"),
        ("BTC", float("nan"), 100.0, 1.0, "INVALID_ORDER"),
        ("BTC", 1.0, float("nan"), 1.0, "INVALID_ORDER"),
        ("BTC", float("inf"), 100.0, 1.0, "INVALID_ORDER"),
        ("BTC", 1.0, float("inf"), 1.0, "INVALID_ORDER"),
        ("BTC", 1.0, 100.0, float("nan"), "INVALID_ORDER"),
    ],
)
def test_invalid_orders_are_declined(symbol, quantity, price, leverage, code) -> None:
    ledger = _ledger(_seeded_store())
    result = ledger.execute_order("u1", "demo", symbol, "buy", quantity, price, leverage=leverage)
    assert not result.accepted
    assert result.code == code
    assert ledger.get_balance("u1", "demo") == 10000.0


def test_expired_demo_rejects_without_mutation() -> None:
    store = InMemoryAccountStore()
    ProfileService(store, clock=lambda: NOW - timedelta(days=4)).ensure_profile("u1", "Ada", "ada@example.com")
    notifier = RecordingNotifier()
    ledger = _ledger(store, monitor=Monitor(notifier))

    result = ledger.execute_order("u1", "demo", "BTC", "buy", 0.01, 50000.0)
    assert not result.accepted
    assert result.code == "DEMO_EXPIRED"
    assert ledger.get_balance("u1", "demo") == 10000.0
    assert ledger.get_trades("u1") == []
    assert notifier.events[0][0] == "DEMO_EXPIRED"


def test_expired_demo_is_reported_before_order_validation() -> None:
    store = InMemoryAccountStore()
    ProfileService(store, clock=lambda: NOW - timedelta(days=4)).ensure_profile("u1")
    ledger = _ledger(store)

    unknown = ledger.execute_order("u1", "demo", "DOGE", "buy", 1.0, 1.0)
    assert unknown.code == "DEMO_EXPIRED"
    invalid = ledger.execute_order("u1", "demo", "BTC", "buy", 0.0, 1.0)
    assert invalid.code == "DEMO_EXPIRED"


def test_non_finite_sell_price_leaves_books_unchanged() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "BTC", "buy", 1.0, 100.0)

    result = ledger.execute_order("u1", "demo", "BTC", "sell", 1.0, float("nan"))
    assert not result.accepted
    assert result.code == "INVALID_ORDER"
    assert ledger.get_balance("u1", "demo") == pytest.approx(9900.0)
    assert ledger.get_position("u1", "demo", "BTC").quantity == pytest.approx(1.0)

    # A later oversized buy is still checked against a real balance.
    oversized = ledger.execute_order("u1", "demo", "BTC", "buy", 1000.0, 100.0)
    assert oversized.code == "INSUFFICIENT_MARGIN"


def test_live_account_ignores_demo_expiry() -> None:
    store = InMemoryAccountStore()
    ProfileService(store, clock=lambda: NOW - timedelta(days=4)).ensure_profile("u1")
    ledger = _ledger(store)
    ledger.deposit("u1", 1000.0)
    result = ledger.execute_order("u1", "live", "BTC", "buy", 0.01, 50000.0)
    assert result.accepted
    assert ledger.get_balance("u1", "live") == pytest.approx(500.0)
    assert ledger.get_balance("u1", "demo") == pytest.approx(10000.0)


def test_executed_order_logs_trade_and_notification(tmp_path) -> None:
    audit = AuditLog(tmp_path / "audit.log")
    ledger = _ledger(_seeded_store(), audit_log=audit)
    result = ledger.execute_order("u1", "demo", "BTC", "buy", 0.1, 50000.0, leverage=2)

    trades = ledger.get_trades("u1", "demo")
    assert [trade.id for trade in trades] == [result.trade.id]
    assert trades[0].amount == pytest.approx(5000.0)
    assert trades[0].leverage == 2
    assert trades[0].timestamp == NOW
    assert ledger.get_trades("u1", "live") == []

    notifications = ledger.get_notifications("u1")
    assert len(notifications) == 1
    assert notifications[0].kind == NotificationKind.ORDER
    assert notifications[0].title == "Order Executed"
    assert notifications[0].read is False

    events = audit.events()
    assert events[-1]["event"] == "order_executed"
    assert events[-1]["payload"]["trade_id"] == result.trade.id


def test_store_failure_leaves_state_untouched(tmp_path) -> None:
    store = FailingStore({"portfolio/u1/balance/demo": 10000.0})
    notifier = RecordingNotifier()
    audit = AuditLog(tmp_path / "audit.log")
    ledger = _ledger(store, audit_log=audit, monitor=Monitor(notifier))

    with pytest.raises(StoreWriteFailed):
        ledger.execute_order("u1", "demo", "BTC", "buy", 0.1, 50000.0)

    assert ledger.get_balance("u1", "demo") == 10000.0
    assert ledger.get_positions("u1", "demo") == {}
    assert ledger.get_trades("u1") == []
    assert notifier.events[0][0] == "STORE_WRITE"
    assert audit.events()[-1]["event"] == "store_write_failed"


def test_deposit_credits_live_balance() -> None:
    ledger = _ledger(_seeded_store(live=50.0))
    assert ledger.deposit("u1", 100.0) == pytest.approx(150.0)
    assert ledger.get_balance("u1", "live") == pytest.approx(150.0)
    assert ledger.get_balance("u1", "demo") == pytest.approx(10000.0)
    notification = ledger.get_notifications("u1")[0]
    assert notification.message == "Added $100.00 to Live Account"

    with pytest.raises(InvalidOrder):
        ledger.deposit("u1", 0)
    with pytest.raises(InvalidOrder):
        ledger.deposit("u1", float("nan"))
    with pytest.raises(InvalidOrder):
        ledger.deposit("u1", float("inf"))
    assert ledger.get_balance("u1", "live") == pytest.approx(150.0)


def test_legacy_balance_record_is_read_as_demo_and_migrated() -> None:
    store = InMemoryAccountStore({"portfolio/u1/balance": {"usd": 2500.0}})
    ledger = _ledger(store)
    balances = ledger.get_balances("u1")
    assert balances.demo == 2500.0
    assert balances.live == 0.0

    ledger.deposit("u1", 10.0)
    assert store.get("portfolio/u1/balance") is None
    assert store.get("portfolio/u1/balance/demo") == 2500.0
    assert store.get("portfolio/u1/balance/live") == 10.0


def test_mark_notification_read() -> None:
    ledger = _ledger(_seeded_store())
    ledger.execute_order("u1", "demo", "BTC", "buy", 0.01, 100.0)
    notification = ledger.get_notifications("u1")[0]

    assert ledger.mark_notification_read("u1", notification.id) is True
    assert ledger.get_notifications("u1", unread_only=True) == []
    assert ledger.mark_notification_read("u1", "missing") is False


def test_snapshot_reads_one_account() -> None:
    ledger = _ledger(_seeded_store(live=100.0))
    ledger.execute_order("u1", "demo", "BTC", "buy", 0.1, 1000.0)
    snapshot = ledger.snapshot("u1", "live")
    assert snapshot.balance == 100.0
    assert snapshot.positions == {}
    assert snapshot.trades == []
    assert len(snapshot.notifications) == 1
