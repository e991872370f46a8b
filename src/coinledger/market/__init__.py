"""Market data ingestion."""

from coinledger.market.feed import MarketFeed
from coinledger.market.history import PriceHistoryBuffer
from coinledger.market.models import (
    DEFAULT_INSTRUMENTS,
    InstrumentSpec,
    MarketData,
    PricePoint,
    QuoteSnapshot,
    StreamState,
    Tick,
)
from coinledger.market.orderbook import OrderBook, OrderBookLevel, illustrative_order_book
from coinledger.market.quotes import QuoteClient, parse_quote
from coinledger.market.stream import PriceStream, parse_trade_message

__all__ = [
    "DEFAULT_INSTRUMENTS",
    "InstrumentSpec",
    "MarketData",
    "MarketFeed",
    "OrderBook",
    "OrderBookLevel",
    "PriceHistoryBuffer",
    "PricePoint",
    "PriceStream",
    "QuoteClient",
    "QuoteSnapshot",
    "StreamState",
    "Tick",
    "illustrative_order_book",
    "parse_quote",
    "parse_trade_message",
]
