from datetime import datetime, timezone
from pathlib import Path

from coinledger.ledger import AccountLedger, LedgerView, ProfileService, SqliteAccountStore, WatchlistStore
from coinledger.ledger import margin
from coinledger.market import illustrative_order_book
from coinledger.monitoring import AuditLog


store = SqliteAccountStore(Path("runtime") / "demo_ledger.db")
audit = AuditLog(Path("runtime") / "audit.log")

profiles = ProfileService(store)
profile = profiles.ensure_profile("demo-user", "Demo Trader", "demo@example.com")
print("Profile:", profile.trading_id, "demo expires", profile.demo_expires_at)

ledger = AccountLedger(store, instruments=["BTC", "ETH", "SOL"], audit_log=audit)
view = LedgerView(store, "demo-user")
view.on_change(lambda: print(f"  view -> balance {view.balance:.2f}, positions {sorted(view.positions)}"))

print("Buy:", ledger.execute_order("demo-user", "demo", "BTC", "buy", 0.1, 50000.0, leverage=2))
print("Oversized buy:", ledger.execute_order("demo-user", "demo", "ETH", "buy", 100.0, 3000.0))

prices = {"BTC": 60000.0}
for row in margin.value_portfolio(view.positions.values(), prices):
    print(f"{row.symbol}: value {row.value:.2f} pnl {row.pnl:.2f} ({row.pnl_percent:.2f}%)")
print("Net worth:", margin.total_net_worth(view.balance, view.positions.values(), prices))

print("Sell:", ledger.execute_order("demo-user", "demo", "BTC", "sell", 0.1, 60000.0))
print("Live deposit:", ledger.deposit("demo-user", 250.0))

watchlist = WatchlistStore(store)
print("Watchlist:", watchlist.add("demo-user", "DOGE"))

book = illustrative_order_book(60000.0)
print("Book spread:", round(book.spread, 2), "at", datetime.now(timezone.utc).isoformat())
print("Unread notifications:", view.unread_count)
