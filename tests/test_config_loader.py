from pathlib import Path

import pytest

yaml = pytest.importorskip("yaml")

from coinledger.config import (
    freeze_config,
    load_config,
    resolve_token,
    serialize_config,
    verify_config_lock,
)
from coinledger.config.models import FeedConfig

SAMPLE = Path(__file__).parents[1] / "configs" / "coinledger.yaml"


def test_load_config_sample() -> None:
    config = load_config(SAMPLE)
    assert config.name == "coinledger"
    assert config.instruments["BTC"].provider_symbol == "BINANCE:BTCUSDT"
    assert len(config.instruments) == 8
    assert config.feed.history_capacity == 50
    assert config.feed.reconnect is False
    assert config.ledger.max_leverage == 200
    assert config.ledger.default_watchlist == ["BTC", "ETH", "SOL"]
    assert config.store.backend == "sqlite"


def test_freeze_and_verify(tmp_path) -> None:
    target = tmp_path / "coinledger.yaml"
    target.write_text(SAMPLE.read_text(encoding="utf-8"), encoding="utf-8")

    lock_path = freeze_config(target)
    assert verify_config_lock(target, lock_path)

    target.write_text(target.read_text(encoding="utf-8") + "\n# edited\n", encoding="utf-8")
    assert not verify_config_lock(target, lock_path)


def test_minimal_config_uses_defaults(tmp_path) -> None:
    path = tmp_path / "minimal.yaml"
    path.write_text("name: mini\nversion: 2\n", encoding="utf-8")
    config = load_config(path)
    assert config.version == "2"
    assert "DOGE" in config.instruments
    assert config.store.backend == "memory"
    assert config.ledger.min_leverage == 1.0


@pytest.mark.parametrize(
    "body",
    [
        "version: 1\n",
        "name: x\nversion: 1\nstore: {backend: redis}\n",
        "name: x\nversion: 1\nledger: {min_leverage: 10, max_leverage: 5}\n",
        "name: x\nversion: 1\ninstruments: {BTC: {name: Bitcoin}}\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_configs_are_rejected(tmp_path, body) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_token_resolution_and_masking(monkeypatch) -> None:
    monkeypatch.setenv("FINNHUB_TOKEN", "from-env")
    assert resolve_token(FeedConfig()) == "from-env"
    assert resolve_token(FeedConfig(token="inline")) == "inline"
    assert resolve_token(FeedConfig(token_env=None)) == ""

    config = load_config(SAMPLE)
    payload = serialize_config(config)
    assert payload["feed"]["token"] == ""
