"""Windowed incremental indicators (O(1) amortized per bar).

A window of ``bar_count`` covers the last ``bar_count`` *valid* (non-NaN)
observations of the input. NaN inputs are skipped: they are never stored,
never selected as an extremum and do not count towards stability. Before
the window is full the value is computed over what has been seen so far and
``is_stable`` stays False.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Tuple

from .indicators import NumericIndicator
from .num import NaN, Num
from .types import Bar


def _check_bar_count(bar_count: int) -> int:
    if bar_count <= 0:
        raise ValueError(f"bar_count must be positive, got {bar_count}")
    return int(bar_count)


class WindowIndicator(NumericIndicator):
    """Base for indicators over the last ``bar_count`` valid input values."""

    def __init__(self, indicator: NumericIndicator, bar_count: int):
        self.bar_count = _check_bar_count(bar_count)
        super().__init__(indicator.factory)
        self.indicator = indicator
        self._observed = 0

    @property
    def observed(self) -> int:
        """Number of valid observations consumed so far."""
        return self._observed

    @property
    def is_stable(self) -> bool:
        return self._observed >= self.bar_count and self.indicator.is_stable

    @property
    def lag(self) -> int:
        return self.bar_count


class _ExtremumIndicator(WindowIndicator):
    """Monotonic deque of ``(sequence, value)``; the front is the extremum."""

    def __init__(self, indicator: NumericIndicator, bar_count: int):
        super().__init__(indicator, bar_count)
        self._window: Deque[Tuple[int, Num]] = deque()

    def _dominated(self, kept: Num, incoming: Num) -> bool:
        raise NotImplementedError

    def _update_state(self, bar: Bar) -> Num:
        x = self.indicator.on_bar(bar)
        if x.is_nan():
            return self._window[0][1] if self._window else NaN

        seq = self._observed
        self._observed += 1
        while self._window and self._dominated(self._window[-1][1], x):
            self._window.pop()
        self._window.append((seq, x))
        while self._window[0][0] <= seq - self.bar_count:
            self._window.popleft()
        return self._window[0][1]


class HighestValueIndicator(_ExtremumIndicator):
    def _dominated(self, kept: Num, incoming: Num) -> bool:
        return kept <= incoming


class LowestValueIndicator(_ExtremumIndicator):
    def _dominated(self, kept: Num, incoming: Num) -> bool:
        return kept >= incoming


class RunningTotalIndicator(WindowIndicator):
    """Sum of the last ``bar_count`` valid values (add new, evict oldest)."""

    def __init__(self, indicator: NumericIndicator, bar_count: int):
        super().__init__(indicator, bar_count)
        self._values: Deque[Num] = deque()
        self._total = self.factory.zero

    def _push(self, bar: Bar) -> None:
        x = self.indicator.on_bar(bar)
        if x.is_nan():
            return
        self._observed += 1
        self._values.append(x)
        self._total = self._total + x
        if len(self._values) > self.bar_count:
            self._total = self._total - self._values.popleft()

    def _update_state(self, bar: Bar) -> Num:
        self._push(bar)
        return self._total


class SMAIndicator(RunningTotalIndicator):
    """Simple moving average; NaN until the first valid value."""

    def _update_state(self, bar: Bar) -> Num:
        self._push(bar)
        return self._total / len(self._values)


class PreviousValueIndicator(NumericIndicator):
    """Value of ``indicator`` ``n`` bars ago (NaN until available)."""

    def __init__(self, indicator: NumericIndicator, n: int = 1):
        if n <= 0:
            raise ValueError(f"n must be positive, got {n}")
        super().__init__(indicator.factory)
        self.indicator = indicator
        self.n = int(n)
        self._history: Deque[Num] = deque(maxlen=self.n + 1)

    def _update_state(self, bar: Bar) -> Num:
        self._history.append(self.indicator.on_bar(bar))
        if len(self._history) <= self.n:
            return NaN
        return self._history[0]

    @property
    def is_stable(self) -> bool:
        return len(self._history) > self.n and self.indicator.is_stable

    @property
    def lag(self) -> int:
        return self.n + self.indicator.lag
