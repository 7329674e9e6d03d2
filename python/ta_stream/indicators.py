"""Indicator evaluation contract.

An indicator holds one value for "the current time step". Callers drive it
with ``on_bar(bar)`` in dependency order and read ``value`` afterwards.

Update guard:
- a bar whose ``begin_time`` is strictly after the last processed one
  triggers exactly one ``_update_state`` call
- the same ``begin_time`` again is a no-op returning the cached value, so
  several consumers may drive a shared indicator
- an earlier ``begin_time`` raises ``TimeRewindError``; replaying history
  means building a fresh graph

Indicators are single-writer objects and carry no locks. Calling ``on_bar``
on one graph from several threads is not supported.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Generic, Optional, TypeVar

from .errors import TimeRewindError
from .num import NaN, Num, NumFactory
from .types import Bar

T = TypeVar("T")


class Indicator(ABC, Generic[T]):
    def __init__(self, initial: T):
        self._value: T = initial
        self._current_time: Optional[datetime] = None

    @property
    def value(self) -> T:
        """Last computed value."""
        return self._value

    @property
    def current_time(self) -> Optional[datetime]:
        """``begin_time`` of the last processed bar (None before the first)."""
        return self._current_time

    def on_bar(self, bar: Bar) -> T:
        t = bar.begin_time
        if self._current_time is not None:
            if t == self._current_time:
                return self._value
            if t < self._current_time:
                raise TimeRewindError(
                    f"{type(self).__name__} got bar at {t} after processing {self._current_time}"
                )
        value = self._update_state(bar)
        self._current_time = t
        self._value = value
        return value

    @abstractmethod
    def _update_state(self, bar: Bar) -> T:
        """Consume one new bar and return the new value."""

    @property
    @abstractmethod
    def is_stable(self) -> bool:
        """True once enough history was consumed to trust ``value``."""

    @property
    @abstractmethod
    def lag(self) -> int:
        """Number of bars needed before the indicator can become stable."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(value={self._value!r}, stable={self.is_stable})"


class NumericIndicator(Indicator[Num]):
    """Indicator producing ``Num`` values of one factory.

    Arithmetic operators build uncached ``BinaryOperation``/``UnaryOperation``
    nodes; comparisons are methods (``gt``, ``lt`` ...) returning boolean
    indicators so that ``==`` keeps its identity meaning.
    """

    def __init__(self, factory: NumFactory):
        super().__init__(NaN)
        self.factory = factory

    # ---------- arithmetic ----------

    def __add__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.sum(self, other)

    def __radd__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.sum(other, self, factory=self.factory)

    def __sub__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.difference(self, other)

    def __rsub__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.difference(other, self, factory=self.factory)

    def __mul__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.product(self, other)

    def __rmul__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.product(other, self, factory=self.factory)

    def __truediv__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.quotient(self, other)

    def __rtruediv__(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.quotient(other, self, factory=self.factory)

    def __neg__(self) -> "NumericIndicator":
        from .operations import UnaryOperation

        return UnaryOperation.negate(self)

    def __abs__(self) -> "NumericIndicator":
        from .operations import UnaryOperation

        return UnaryOperation.abs(self)

    def __pow__(self, exponent) -> "NumericIndicator":
        from .operations import UnaryOperation

        return UnaryOperation.pow(self, exponent)

    def sqrt(self) -> "NumericIndicator":
        from .operations import UnaryOperation

        return UnaryOperation.sqrt(self)

    def log(self) -> "NumericIndicator":
        from .operations import UnaryOperation

        return UnaryOperation.log(self)

    def min(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.min(self, other)

    def max(self, other) -> "NumericIndicator":
        from .operations import BinaryOperation

        return BinaryOperation.max(self, other)

    # ---------- comparisons ----------

    def gt(self, other) -> "BooleanIndicator":
        from .operations import ComparisonIndicator

        return ComparisonIndicator(self, other, "gt")

    def ge(self, other) -> "BooleanIndicator":
        from .operations import ComparisonIndicator

        return ComparisonIndicator(self, other, "ge")

    def lt(self, other) -> "BooleanIndicator":
        from .operations import ComparisonIndicator

        return ComparisonIndicator(self, other, "lt")

    def le(self, other) -> "BooleanIndicator":
        from .operations import ComparisonIndicator

        return ComparisonIndicator(self, other, "le")

    def eq(self, other) -> "BooleanIndicator":
        from .operations import ComparisonIndicator

        return ComparisonIndicator(self, other, "eq")

    def crossed_over(self, other) -> "BooleanIndicator":
        from .operations import crossed_over

        return crossed_over(self, other)

    def crossed_under(self, other) -> "BooleanIndicator":
        from .operations import crossed_under

        return crossed_under(self, other)

    # ---------- windows ----------

    def previous(self, n: int = 1) -> "NumericIndicator":
        from .rolling import PreviousValueIndicator

        return PreviousValueIndicator(self, n)

    def highest(self, bar_count: int) -> "NumericIndicator":
        from .rolling import HighestValueIndicator

        return HighestValueIndicator(self, bar_count)

    def lowest(self, bar_count: int) -> "NumericIndicator":
        from .rolling import LowestValueIndicator

        return LowestValueIndicator(self, bar_count)

    def running_total(self, bar_count: int) -> "NumericIndicator":
        from .rolling import RunningTotalIndicator

        return RunningTotalIndicator(self, bar_count)

    def sma(self, bar_count: int) -> "NumericIndicator":
        from .rolling import SMAIndicator

        return SMAIndicator(self, bar_count)

    def variance(self, bar_count: int) -> "NumericIndicator":
        from .statistics import VarianceIndicator

        return VarianceIndicator(self, bar_count)

    def stddev(self, bar_count: int) -> "NumericIndicator":
        from .statistics import StandardDeviationIndicator

        return StandardDeviationIndicator(self, bar_count)


class BooleanIndicator(Indicator[bool]):
    def __init__(self):
        super().__init__(False)

    def and_(self, other: "BooleanIndicator") -> "BooleanIndicator":
        from .operations import BooleanCombination

        return BooleanCombination.and_(self, other)

    def or_(self, other: "BooleanIndicator") -> "BooleanIndicator":
        from .operations import BooleanCombination

        return BooleanCombination.or_(self, other)

    def not_(self) -> "BooleanIndicator":
        from .operations import BooleanCombination

        return BooleanCombination.not_(self)

    __and__ = and_
    __or__ = or_
    __invert__ = not_


class ConstantIndicator(NumericIndicator):
    def __init__(self, factory: NumFactory, value):
        super().__init__(factory)
        self.constant = factory.num_of(value)
        self._value = self.constant

    def _update_state(self, bar: Bar) -> Num:
        return self.constant

    @property
    def is_stable(self) -> bool:
        return True

    @property
    def lag(self) -> int:
        return 0


class _BarFieldIndicator(NumericIndicator):
    """Reads one price field of the bar."""

    _field = ""

    def _update_state(self, bar: Bar) -> Num:
        return getattr(bar, self._field)

    @property
    def is_stable(self) -> bool:
        return self._current_time is not None

    @property
    def lag(self) -> int:
        return 0


class OpenPriceIndicator(_BarFieldIndicator):
    _field = "open_price"


class HighPriceIndicator(_BarFieldIndicator):
    _field = "high_price"


class LowPriceIndicator(_BarFieldIndicator):
    _field = "low_price"


class ClosePriceIndicator(_BarFieldIndicator):
    _field = "close_price"


class VolumeIndicator(_BarFieldIndicator):
    _field = "volume"
