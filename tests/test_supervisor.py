import threading
from datetime import datetime, timezone

import pytest

from coinledger.ledger import AccountLedger, InMemoryAccountStore
from coinledger.market import MarketFeed, QuoteSnapshot, StreamState
from coinledger.monitoring import Monitor, Notifier, build_portfolio_status
from coinledger.runtime import FeedSupervisor, ServiceConfig, read_portfolio_status

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def notify(self, event: str, message: str) -> None:
        self.events.append((event, message))


class FakeQuoteClient:
    def fetch_quote(self, provider_symbol: str) -> QuoteSnapshot:
        return QuoteSnapshot(price=100.0, change_pct=0.0, high=100.0, low=100.0)


class FakeStream:
    def __init__(self, **kwargs) -> None:
        self.on_state = kwargs["on_state"]
        self.stopped = False

    def start(self) -> None:
        pass

    def stop(self) -> None:
        self.stopped = True


def _feed(streams: list) -> MarketFeed:
    def factory(**kwargs):
        stream = FakeStream(**kwargs)
        streams.append(stream)
        return stream

    feed = MarketFeed(FakeQuoteClient(), stream_factory=factory, clock=lambda: NOW)
    feed.initialize(["BTC", "ETH"])
    return feed


def test_healthy_stream_is_left_alone() -> None:
    streams: list[FakeStream] = []
    feed = _feed(streams)
    streams[0].on_state(StreamState.OPEN, None)
    supervisor = FeedSupervisor(feed)
    assert supervisor.check_stream() is True
    assert len(streams) == 1


def test_down_stream_is_restarted_and_reported() -> None:
    streams: list[FakeStream] = []
    feed = _feed(streams)
    notifier = RecordingNotifier()
    supervisor = FeedSupervisor(feed, monitor=Monitor(notifier))

    streams[0].on_state(StreamState.ERROR, "connection reset")
    assert supervisor.check_stream() is False
    assert streams[0].stopped
    assert len(streams) == 2
    assert supervisor.restarts == 1
    assert feed.stream_state == StreamState.CONNECTING
    assert [event for event, _ in notifier.events] == ["FEED_DISCONNECT", "FEED_RESTART"]
    assert "connection reset" in notifier.events[0][1]


def test_closed_feed_is_not_restarted() -> None:
    streams: list[FakeStream] = []
    feed = _feed(streams)
    feed.close()
    assert FeedSupervisor(feed).check_stream() is False
    assert len(streams) == 1


def test_status_snapshot_is_written(tmp_path) -> None:
    streams: list[FakeStream] = []
    feed = _feed(streams)
    store = InMemoryAccountStore({"portfolio/u1/balance/demo": 1000.0})
    ledger = AccountLedger(store)
    ledger.execute_order("u1", "demo", "BTC", "buy", 2.0, 100.0, leverage=2)
    feed.on_tick("BTC", 150.0, NOW)

    status_path = tmp_path / "status.json"
    supervisor = FeedSupervisor(
        feed,
        config=ServiceConfig(status_path=str(status_path)),
        status_source=lambda: build_portfolio_status(ledger, feed, "u1", "demo", leverage=2, now=NOW),
    )
    status = supervisor.write_status()
    assert status.balance == pytest.approx(900.0)
    assert status.net_worth == pytest.approx(900.0 + 300.0 - 100.0)
    assert status.buying_power == pytest.approx(1800.0)

    payload = read_portfolio_status(status_path)
    assert payload["account"] == "demo"
    assert payload["now"] == NOW.isoformat()
    assert payload["feed_state"] == "connecting"
    assert payload["positions"][0]["symbol"] == "BTC"
    assert payload["positions"][0]["pnl"] == pytest.approx(100.0)


def test_run_forever_restarts_until_stopped(tmp_path) -> None:
    streams: list[FakeStream] = []
    feed = _feed(streams)
    streams[0].on_state(StreamState.CLOSED, None)
    supervisor = FeedSupervisor(
        feed,
        config=ServiceConfig(health_check_interval_seconds=0.01, status_interval_seconds=60, poll_seconds=0.01),
    )

    stop_event = threading.Event()
    runner = threading.Thread(target=supervisor.run_forever, args=(stop_event,))
    runner.start()
    stop_event.wait(0.2)
    stop_event.set()
    runner.join(timeout=2)

    assert not runner.is_alive()
    assert supervisor.restarts == 1
    assert len(streams) == 2
    assert read_portfolio_status(tmp_path / "missing.json") is None
