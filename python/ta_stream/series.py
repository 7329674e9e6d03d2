"""Ordered bar sequence bound to one numeric factory."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from .num import NumFactory
from .types import Bar


class BarSeries(Sequence):
    """Indexable, append-only sequence of bars.

    Bars must arrive with non-decreasing ``begin_time``; the indicator and
    backtest layers only ever read from it.
    """

    def __init__(self, factory: NumFactory, name: str = "", bars: Optional[List[Bar]] = None):
        self.factory = factory
        self.name = name
        self._bars: List[Bar] = []
        for bar in bars or []:
            self.add_bar(bar)

    def add_bar(self, bar: Bar) -> None:
        if self._bars and bar.begin_time < self._bars[-1].begin_time:
            raise ValueError(
                f"bar begin_time {bar.begin_time} precedes last bar {self._bars[-1].begin_time}"
            )
        if not self.factory.produces(bar.close_price):
            raise ValueError("bar was built with a different numeric factory than the series")
        self._bars.append(bar)

    def add_bar_values(
        self,
        begin_time: datetime,
        period: timedelta,
        open_price,
        high_price,
        low_price,
        close_price,
        volume=0,
    ) -> Bar:
        """Build a bar from plain numbers and append it."""
        f = self.factory.num_of
        bar = Bar(
            begin_time=begin_time,
            end_time=begin_time + period,
            open_price=f(open_price),
            high_price=f(high_price),
            low_price=f(low_price),
            close_price=f(close_price),
            volume=f(volume),
        )
        self.add_bar(bar)
        return bar

    @property
    def first_bar(self) -> Bar:
        return self._bars[0]

    @property
    def last_bar(self) -> Bar:
        return self._bars[-1]

    def __getitem__(self, index):
        return self._bars[index]

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __repr__(self) -> str:
        return f"BarSeries(name={self.name!r}, bars={len(self._bars)})"
