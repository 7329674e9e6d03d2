"""Rolling moments: variance, covariance, correlation and linear regression.

All indicators here update in O(1) per bar by adding the newest observation
and algebraically removing the one that left the window. Pairs where either
side is NaN are skipped like NaN inputs in ``rolling``.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Deque, Tuple

from .errors import NumMismatchError
from .indicators import NumericIndicator
from .num import NaN, Num
from .rolling import WindowIndicator, _check_bar_count
from .types import Bar


class VarianceIndicator(WindowIndicator):
    """Welford's online variance with sliding-window removal.

    ``sample=True`` divides ``M2`` by ``count - 1`` and yields zero while
    ``count <= 1``; ``sample=False`` gives the population variance.
    """

    def __init__(self, indicator: NumericIndicator, bar_count: int, sample: bool = True):
        super().__init__(indicator, bar_count)
        self.sample = sample
        self._values: Deque[Num] = deque()
        self._mean = self.factory.zero
        self._m2 = self.factory.zero

    @property
    def mean(self) -> Num:
        return self._mean if self._values else NaN

    def _insert(self, x: Num) -> None:
        n = len(self._values)
        delta = x - self._mean
        self._mean = self._mean + delta / n
        self._m2 = self._m2 + delta * (x - self._mean)

    def _remove(self, x: Num) -> None:
        n = len(self._values)
        if n == 0:
            self._mean = self.factory.zero
            self._m2 = self.factory.zero
            return
        delta = x - self._mean
        self._mean = self._mean - delta / n
        self._m2 = self._m2 - delta * (x - self._mean)

    def _variance(self) -> Num:
        count = len(self._values)
        denom = count - 1 if self.sample else count
        if denom <= 0:
            return self.factory.zero
        # rounding residue can push M2 slightly below zero
        m2 = self._m2 if self._m2.is_positive() else self.factory.zero
        return m2 / denom

    def _update_state(self, bar: Bar) -> Num:
        x = self.indicator.on_bar(bar)
        if not x.is_nan():
            self._observed += 1
            self._values.append(x)
            self._insert(x)
            if len(self._values) > self.bar_count:
                self._remove(self._values.popleft())
        return self._variance()


class StandardDeviationIndicator(VarianceIndicator):
    def _update_state(self, bar: Bar) -> Num:
        return super()._update_state(bar).sqrt()


class _PairWindowIndicator(NumericIndicator):
    """Running sums over a bounded queue of ``(x, y)`` pairs."""

    def __init__(self, x: NumericIndicator, y: NumericIndicator, bar_count: int):
        self.bar_count = _check_bar_count(bar_count)
        if x.factory != y.factory:
            raise NumMismatchError(f"x uses {x.factory!r} but y uses {y.factory!r}")
        super().__init__(x.factory)
        self.x = x
        self.y = y
        self._pairs: Deque[Tuple[Num, Num]] = deque()
        self._observed = 0
        zero = self.factory.zero
        self._sx = self._sy = self._sxy = self._sxx = self._syy = zero

    def _add(self, x: Num, y: Num, sign: int) -> None:
        if sign > 0:
            self._sx, self._sy = self._sx + x, self._sy + y
            self._sxy = self._sxy + x * y
            self._sxx, self._syy = self._sxx + x * x, self._syy + y * y
        else:
            self._sx, self._sy = self._sx - x, self._sy - y
            self._sxy = self._sxy - x * y
            self._sxx, self._syy = self._sxx - x * x, self._syy - y * y

    def _push(self, x: Num, y: Num) -> None:
        if x.is_nan() or y.is_nan():
            return
        self._observed += 1
        self._pairs.append((x, y))
        self._add(x, y, +1)
        if len(self._pairs) > self.bar_count:
            old_x, old_y = self._pairs.popleft()
            self._add(old_x, old_y, -1)

    def _compute(self) -> Num:
        raise NotImplementedError

    def _update_state(self, bar: Bar) -> Num:
        self._push(self.x.on_bar(bar), self.y.on_bar(bar))
        return self._compute()

    @property
    def is_stable(self) -> bool:
        return self._observed >= self.bar_count and self.x.is_stable and self.y.is_stable

    @property
    def lag(self) -> int:
        return self.bar_count


class CovarianceIndicator(_PairWindowIndicator):
    """Population covariance ``Σxy/n − (Σx/n)(Σy/n)``; zero while empty."""

    def _compute(self) -> Num:
        n = len(self._pairs)
        if n == 0:
            return self.factory.zero
        return self._sxy / n - (self._sx / n) * (self._sy / n)


class PearsonCorrelationIndicator(_PairWindowIndicator):
    """Correlation coefficient; NaN when the radicand is not positive
    (fewer than two points or a constant input)."""

    def _compute(self) -> Num:
        n = len(self._pairs)
        if n == 0:
            return NaN
        numerator = self._sxy * n - self._sx * self._sy
        radicand = (self._sxx * n - self._sx * self._sx) * (self._syy * n - self._sy * self._sy)
        if not radicand.is_positive():
            return NaN
        return numerator / radicand.sqrt()


class RegressionOutput(str, Enum):
    Y = "y"
    SLOPE = "slope"
    INTERCEPT = "intercept"


class SimpleLinearRegressionIndicator(WindowIndicator):
    """Least-squares fit of the input against its observation index.

    ``Y`` is the fitted value at the newest observation. All outputs are zero
    while fewer than two points are in the window.
    """

    def __init__(self, indicator: NumericIndicator, bar_count: int, output: RegressionOutput = RegressionOutput.Y):
        super().__init__(indicator, bar_count)
        self.output = RegressionOutput(output)
        self._points: Deque[Tuple[Num, Num]] = deque()
        zero = self.factory.zero
        self._sx = self._sy = self._sxy = self._sxx = zero

    def _update_state(self, bar: Bar) -> Num:
        y = self.indicator.on_bar(bar)
        if not y.is_nan():
            x = self.factory.num_of(self._observed)
            self._observed += 1
            self._points.append((x, y))
            self._sx, self._sy = self._sx + x, self._sy + y
            self._sxy, self._sxx = self._sxy + x * y, self._sxx + x * x
            if len(self._points) > self.bar_count:
                ox, oy = self._points.popleft()
                self._sx, self._sy = self._sx - ox, self._sy - oy
                self._sxy, self._sxx = self._sxy - ox * oy, self._sxx - ox * ox
        return self._compute()

    def _compute(self) -> Num:
        n = len(self._points)
        if n < 2:
            return self.factory.zero
        slope = (self._sxy * n - self._sx * self._sy) / (self._sxx * n - self._sx * self._sx)
        if self.output is RegressionOutput.SLOPE:
            return slope
        intercept = (self._sy - slope * self._sx) / n
        if self.output is RegressionOutput.INTERCEPT:
            return intercept
        return slope * self._points[-1][0] + intercept
