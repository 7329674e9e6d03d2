"""Uncached operator combinators over indicators.

Each node drives its operands' ``on_bar`` and recomputes on every new bar;
it keeps no per-step memory of its own. Stability is the AND of the
operands' stability and the lag is the largest operand lag.
"""

from __future__ import annotations

import operator
from typing import Callable, Optional, Sequence

from .errors import NumMismatchError
from .indicators import BooleanIndicator, ConstantIndicator, Indicator, NumericIndicator
from .num import Num, NumFactory
from .rolling import PreviousValueIndicator
from .types import Bar


def _check_factories(indicators: Sequence[Indicator]) -> None:
    factories = {ind.factory for ind in indicators if isinstance(ind, NumericIndicator)}
    if len(factories) > 1:
        raise NumMismatchError(
            "indicators from different numeric factories: " + ", ".join(sorted(repr(f) for f in factories))
        )


def _as_indicator(x, factory: NumFactory) -> Indicator:
    if isinstance(x, Indicator):
        return x
    return ConstantIndicator(factory, x)


def _first_factory(*operands) -> NumFactory:
    for x in operands:
        if isinstance(x, NumericIndicator):
            return x.factory
    raise ValueError("at least one operand must be a numeric indicator")


class CombineIndicator(NumericIndicator):
    """Applies ``fn`` to the current values of any number of indicators."""

    def __init__(self, fn: Callable[..., Num], *indicators: Indicator, factory: Optional[NumFactory] = None):
        if not indicators:
            raise ValueError("CombineIndicator needs at least one operand")
        _check_factories(indicators)
        super().__init__(factory or _first_factory(*indicators))
        self._fn = fn
        self.operands = tuple(indicators)

    def _update_state(self, bar: Bar) -> Num:
        values = [ind.on_bar(bar) for ind in self.operands]
        return self._fn(*values)

    @property
    def is_stable(self) -> bool:
        return all(ind.is_stable for ind in self.operands)

    @property
    def lag(self) -> int:
        return max(ind.lag for ind in self.operands)


class BinaryOperation(CombineIndicator):
    """``left <op> right``; either side may be a plain number."""

    def __init__(self, fn: Callable[[Num, Num], Num], left, right, factory: Optional[NumFactory] = None):
        factory = factory or _first_factory(left, right)
        super().__init__(fn, _as_indicator(left, factory), _as_indicator(right, factory), factory=factory)

    @property
    def left(self) -> Indicator:
        return self.operands[0]

    @property
    def right(self) -> Indicator:
        return self.operands[1]

    @classmethod
    def sum(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(operator.add, left, right, factory)

    @classmethod
    def difference(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(operator.sub, left, right, factory)

    @classmethod
    def product(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(operator.mul, left, right, factory)

    @classmethod
    def quotient(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(operator.truediv, left, right, factory)

    @classmethod
    def min(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(lambda a, b: a.min(b), left, right, factory)

    @classmethod
    def max(cls, left, right, factory: Optional[NumFactory] = None) -> "BinaryOperation":
        return cls(lambda a, b: a.max(b), left, right, factory)


class UnaryOperation(CombineIndicator):
    def __init__(self, fn: Callable[[Num], Num], operand: NumericIndicator):
        super().__init__(fn, operand)

    @classmethod
    def sqrt(cls, operand: NumericIndicator) -> "UnaryOperation":
        return cls(lambda x: x.sqrt(), operand)

    @classmethod
    def abs(cls, operand: NumericIndicator) -> "UnaryOperation":
        return cls(abs, operand)

    @classmethod
    def negate(cls, operand: NumericIndicator) -> "UnaryOperation":
        return cls(operator.neg, operand)

    @classmethod
    def log(cls, operand: NumericIndicator) -> "UnaryOperation":
        return cls(lambda x: x.log(), operand)

    @classmethod
    def pow(cls, operand: NumericIndicator, exponent) -> "UnaryOperation":
        exponent = operand.factory.num_of(exponent)
        return cls(lambda x: x ** exponent, operand)


_COMPARATORS = {
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
    "eq": operator.eq,
}


class ComparisonIndicator(BooleanIndicator):
    """Boolean ``left <cmp> right``. Any comparison involving NaN is False."""

    def __init__(self, left: NumericIndicator, right, comparator: str):
        if comparator not in _COMPARATORS:
            raise ValueError(f"unknown comparator {comparator!r}, expected one of {sorted(_COMPARATORS)}")
        super().__init__()
        factory = _first_factory(left, right)
        self.left = _as_indicator(left, factory)
        self.right = _as_indicator(right, factory)
        _check_factories((self.left, self.right))
        self.comparator = comparator
        self._cmp = _COMPARATORS[comparator]

    def _update_state(self, bar: Bar) -> bool:
        a = self.left.on_bar(bar)
        b = self.right.on_bar(bar)
        if a.is_nan() or b.is_nan():
            return False
        return bool(self._cmp(a, b))

    @property
    def is_stable(self) -> bool:
        return self.left.is_stable and self.right.is_stable

    @property
    def lag(self) -> int:
        return max(self.left.lag, self.right.lag)


class BooleanCombination(BooleanIndicator):
    def __init__(self, fn: Callable[..., bool], *operands: BooleanIndicator):
        super().__init__()
        self._fn = fn
        self.operands = tuple(operands)

    def _update_state(self, bar: Bar) -> bool:
        return bool(self._fn(*[ind.on_bar(bar) for ind in self.operands]))

    @property
    def is_stable(self) -> bool:
        return all(ind.is_stable for ind in self.operands)

    @property
    def lag(self) -> int:
        return max(ind.lag for ind in self.operands)

    @classmethod
    def and_(cls, left: BooleanIndicator, right: BooleanIndicator) -> "BooleanCombination":
        return cls(lambda a, b: a and b, left, right)

    @classmethod
    def or_(cls, left: BooleanIndicator, right: BooleanIndicator) -> "BooleanCombination":
        return cls(lambda a, b: a or b, left, right)

    @classmethod
    def not_(cls, operand: BooleanIndicator) -> "BooleanCombination":
        return cls(operator.not_, operand)


def crossed_over(left: NumericIndicator, right) -> BooleanIndicator:
    """True on the bar where ``left`` moves from at-or-below ``right`` to above it."""
    factory = _first_factory(left, right)
    right = _as_indicator(right, factory)
    now_above = ComparisonIndicator(left, right, "gt")
    was_below = ComparisonIndicator(PreviousValueIndicator(left), PreviousValueIndicator(right), "le")
    return BooleanCombination.and_(now_above, was_below)


def crossed_under(left: NumericIndicator, right) -> BooleanIndicator:
    """True on the bar where ``left`` moves from at-or-above ``right`` to below it."""
    factory = _first_factory(left, right)
    right = _as_indicator(right, factory)
    now_below = ComparisonIndicator(left, right, "lt")
    was_above = ComparisonIndicator(PreviousValueIndicator(left), PreviousValueIndicator(right), "ge")
    return BooleanCombination.and_(now_below, was_above)
