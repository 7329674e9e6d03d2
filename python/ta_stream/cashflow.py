"""Cash-flow valuation series.

Both series map timestamps to a value normalized to a basis of 1:

- ``CashFlow``: mark-to-market, one point per bar while a position is open.
  Positions contribute ``ratio - 1`` on top of the basis and contributions
  meeting at the same timestamp are summed.
- ``RealizedCashFlow``: points only at entries and exits (compounded across
  positions), plus one point for an open position at the latest known price.
  Values between points are interpolated linearly on wall-clock time.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

import pandas as pd
from loguru import logger

from .num import Num, NumFactory
from .position import Position
from .trading_record import TradingRecord

Source = Union[Position, TradingRecord]


def _positions_of(source: Source) -> List[Position]:
    if isinstance(source, Position):
        return [source] if source.entry is not None else []
    if isinstance(source, TradingRecord):
        return [p for p in source.all_positions() if p.entry is not None]
    raise TypeError(f"expected Position or TradingRecord, got {type(source).__name__}")


class _ValueSeries:
    """Sorted timestamp -> value mapping."""

    def __init__(self, factory: NumFactory):
        self.factory = factory
        self._times: List[datetime] = []
        self._values: List[Num] = []

    def _load(self, points: Dict[datetime, Num]) -> None:
        for t in sorted(points):
            self._times.append(t)
            self._values.append(points[t])

    @property
    def values(self) -> Dict[datetime, Num]:
        return dict(zip(self._times, self._values))

    @property
    def times(self) -> List[datetime]:
        return list(self._times)

    def __len__(self) -> int:
        return len(self._times)

    def _exact(self, t: datetime) -> Optional[Num]:
        i = bisect_left(self._times, t)
        if i < len(self._times) and self._times[i] == t:
            return self._values[i]
        return None

    def max_drawdown(self) -> Num:
        """Largest peak-to-trough decline, peak starting at the basis 1."""
        peak = self.factory.one
        worst = self.factory.zero
        for value in self._values:
            if value.is_nan():
                continue
            peak = peak.max(value)
            worst = worst.max((peak - value) / peak)
        return worst

    def to_series(self) -> pd.Series:
        """Float series indexed by timestamp (for reporting and plotting)."""
        return pd.Series(
            [float(v) for v in self._values],
            index=pd.DatetimeIndex(self._times),
            name=type(self).__name__,
            dtype=float,
        )


class CashFlow(_ValueSeries):
    """Mark-to-market cash flow of a position or a trading record."""

    def __init__(self, source: Source, factory: Optional[NumFactory] = None):
        super().__init__(factory or source.factory)
        one = self.factory.one
        realized = self.factory.zero
        points: Dict[datetime, Num] = {}
        for position in _positions_of(source):
            for t, ratio in position.cash_flow():
                points[t] = one + realized + (ratio - one)
            if position.is_closed:
                realized = realized + (position.realized_ratio - one)
        self._load(points)
        logger.debug("cash flow built with {} points", len(self))

    def get_value(self, t: datetime) -> Num:
        """Recorded value at ``t``, else the last value before it; 1 before all points."""
        i = bisect_right(self._times, t)
        if i == 0:
            return self.factory.one
        return self._values[i - 1]


class RealizedCashFlow(_ValueSeries):
    """Cash flow known only at trade instants, interpolated in between."""

    def __init__(self, source: Source, factory: Optional[NumFactory] = None):
        super().__init__(factory or source.factory)
        value = self.factory.one
        points: Dict[datetime, Num] = {}
        for position in _positions_of(source):
            entry = position.entry
            points[entry.when_executed] = value
            if position.is_closed:
                value = value * position.realized_ratio
                points[position.exit.when_executed] = value
                continue
            at, price = self._latest_mark(position, source)
            if at > entry.when_executed:
                points[at] = value * position.value_ratio(price, at)
        self._load(points)
        logger.debug("realized cash flow built with {} points", len(self))

    @staticmethod
    def _latest_mark(position: Position, source: Source):
        if isinstance(source, TradingRecord) and source.current_time is not None:
            if source.current_time >= position.last_seen_time and not source.current_price.is_nan():
                return source.current_time, source.current_price
        return position.last_seen_time, position.last_price

    def get_value(self, t: datetime) -> Num:
        exact = self._exact(t)
        if exact is not None:
            return exact
        if not self._times or t < self._times[0]:
            return self.factory.one
        if t > self._times[-1]:
            return self._values[-1]
        i = bisect_right(self._times, t)
        t0, t1 = self._times[i - 1], self._times[i]
        v0, v1 = self._values[i - 1], self._values[i]
        fraction = (t - t0).total_seconds() / (t1 - t0).total_seconds()
        return v0 + (v1 - v0) * self.factory.num_of(fraction)


class ReturnType(str, Enum):
    ARITHMETIC = "arithmetic"
    LOG = "log"


class Returns:
    """Step returns of a value series: ``v[i]/v[i-1] - 1`` or ``log(v[i]/v[i-1])``."""

    def __init__(self, cash_flow: _ValueSeries, return_type: ReturnType = ReturnType.ARITHMETIC):
        self.factory = cash_flow.factory
        self.return_type = ReturnType(return_type)
        values = list(cash_flow.values.items())
        self._times: List[datetime] = []
        self._returns: List[Num] = []
        for (_, prev), (t, cur) in zip(values, values[1:]):
            ratio = cur / prev
            r = ratio.log() if self.return_type is ReturnType.LOG else ratio - self.factory.one
            self._times.append(t)
            self._returns.append(r)

    @property
    def values(self) -> List[Num]:
        return list(self._returns)

    def __len__(self) -> int:
        return len(self._returns)

    def to_series(self) -> pd.Series:
        return pd.Series(
            [float(r) for r in self._returns],
            index=pd.DatetimeIndex(self._times),
            name=f"{self.return_type.value}_returns",
            dtype=float,
        )
