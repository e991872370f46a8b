from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path

import streamlit as st


def _load_json(path: Path) -> dict | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return None


def _format_currency(value: float) -> str:
    return f"${value:,.2f}"


def _format_pct(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}%"


def main() -> None:
    st.set_page_config(page_title="Coinledger HUD", layout="wide")
    st.title("Coinledger Portfolio HUD")

    default_status_path = os.getenv("COINLEDGER_STATUS_PATH", "runtime/status.json")
    status_path = Path(st.sidebar.text_input("Status path", value=default_status_path))
    status = _load_json(status_path)

    if status is None:
        st.warning(f"No status found at {status_path}")
        return

    now = status.get("now")
    if now:
        try:
            now = datetime.fromisoformat(now)
        except ValueError:
            now = None

    col_a, col_b, col_c, col_d = st.columns(4)
    col_a.metric("Net Worth", _format_currency(status.get("net_worth", 0.0)))
    col_b.metric("Cash Balance", _format_currency(status.get("balance", 0.0)))
    col_c.metric("Buying Power", _format_currency(status.get("buying_power", 0.0)))
    col_d.metric("Unread", str(status.get("unread_notifications", 0)))

    st.subheader("Feed")
    feed_state = status.get("feed_state", "idle")
    if feed_state in {"closed", "error"}:
        st.error(f"Price stream {feed_state}")
    elif feed_state == "open":
        st.success("Price stream live")
    else:
        st.info(f"Price stream {feed_state}")

    if status.get("demo_expires_at"):
        st.caption(f"Demo account expires {status['demo_expires_at']}")

    st.subheader("Positions")
    positions = status.get("positions", [])
    if not positions:
        st.caption("No open positions")
    else:
        st.dataframe(
            [
                {
                    "Symbol": row["symbol"],
                    "Quantity": row["quantity"],
                    "Entry": _format_currency(row["avg_price"]),
                    "Price": _format_currency(row["current_price"]),
                    "Value": _format_currency(row["value"]),
                    "Borrowed": _format_currency(row["borrowed"]),
                    "PnL": _format_currency(row["pnl"]),
                    "PnL %": _format_pct(row.get("pnl_percent")),
                }
                for row in positions
            ],
            use_container_width=True,
        )

    st.subheader("Details")
    st.json({
        "user_id": status.get("user_id"),
        "account": status.get("account"),
        "last_update": now.isoformat() if isinstance(now, datetime) else status.get("now"),
    })


if __name__ == "__main__":
    main()
