"""Margin-trading ledger and market data feed."""

__version__ = "0.1.0"
