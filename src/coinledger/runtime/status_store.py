"""Helpers to store portfolio status snapshots."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from coinledger.monitoring.status import PortfolioStatus


def write_portfolio_status(path: str | Path, status: PortfolioStatus) -> None:
    payload = asdict(status)
    payload["now"] = status.now.isoformat()
    payload["account"] = status.account.value
    payload["demo_expires_at"] = status.demo_expires_at.isoformat() if status.demo_expires_at else None
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp.replace(path)


def read_portfolio_status(path: str | Path) -> dict | None:
    path = Path(path)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
