"""Ledger error taxonomy."""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DemoExpired(LedgerError):
    code = "DEMO_EXPIRED"


class InsufficientMargin(LedgerError):
    code = "INSUFFICIENT_MARGIN"

    def __init__(self, required: float, available: float) -> None:
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient margin: required {required:.2f}, available {available:.2f} "
            f"(short {self.shortfall:.2f})"
        )


class InsufficientHoldings(LedgerError):
    code = "INSUFFICIENT_HOLDINGS"

    def __init__(self, symbol: str, requested: float, held: float) -> None:
        self.symbol = symbol
        self.requested = requested
        self.held = held
        super().__init__(f"Insufficient holdings: requested {requested:g} {symbol}, held {held:g}")


class UnknownInstrument(LedgerError):
    code = "UNKNOWN_INSTRUMENT"

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Unknown instrument: {symbol}")


class InvalidOrder(LedgerError):
    code = "INVALID_ORDER"


class UpstreamUnavailable(LedgerError):
    code = "UPSTREAM_UNAVAILABLE"


class StoreWriteFailed(LedgerError):
    code = "STORE_WRITE_FAILED"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
