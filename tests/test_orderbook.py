import random

import pytest

from coinledger.market.orderbook import illustrative_order_book


def test_order_book_brackets_last_price() -> None:
    book = illustrative_order_book(50000.0, rng=random.Random(7))
    assert len(book.asks) == 6
    assert len(book.bids) == 6
    assert all(level.price > 50000.0 for level in book.asks)
    assert all(level.price < 50000.0 for level in book.bids)
    assert [level.price for level in book.asks] == sorted((level.price for level in book.asks), reverse=True)
    assert [level.price for level in book.bids] == sorted((level.price for level in book.bids), reverse=True)
    assert book.spread == pytest.approx(50000.0 * 0.001)


def test_order_book_level_totals() -> None:
    book = illustrative_order_book(100.0, depth=2, rng=random.Random(1))
    for level in book.asks + book.bids:
        assert 0 <= level.quantity <= 2.0
        assert level.total == pytest.approx(level.price * level.quantity)


def test_order_book_empty_without_price() -> None:
    book = illustrative_order_book(0.0)
    assert book.asks == ()
    assert book.bids == ()
    assert book.spread == 0.0
