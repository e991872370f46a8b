"""Fixed-capacity price history per instrument."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Iterable, Iterator, Optional

from coinledger.market.models import PricePoint


class PriceHistoryBuffer:
    """Append-only ring of (time, price) samples; the oldest sample is evicted first."""

    def __init__(self, capacity: int = 50, samples: Optional[Iterable[PricePoint]] = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._samples: deque[PricePoint] = deque(maxlen=capacity)
        for sample in samples or ():
            self._samples.append(sample)

    def append(self, time: datetime, price: float) -> None:
        self._samples.append(PricePoint(time=time, price=price))

    def snapshot(self) -> tuple[PricePoint, ...]:
        return tuple(self._samples)

    def latest(self) -> Optional[PricePoint]:
        if not self._samples:
            return None
        return self._samples[-1]

    def high(self) -> Optional[float]:
        if not self._samples:
            return None
        return max(sample.price for sample in self._samples)

    def low(self) -> Optional[float]:
        if not self._samples:
            return None
        return min(sample.price for sample in self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(tuple(self._samples))
