from __future__ import annotations

import math

import numpy as np
import pytest

from ta_stream.indicators import ClosePriceIndicator
from ta_stream.rolling import (
    HighestValueIndicator,
    LowestValueIndicator,
    PreviousValueIndicator,
    RunningTotalIndicator,
    SMAIndicator,
)


@pytest.mark.parametrize("bar_count", [1, 3, 7, 25])
def test_extrema_match_brute_force(factory, make_series, bar_count):
    rng = np.random.default_rng(bar_count)
    data = rng.normal(100.0, 5.0, size=150).round(4)
    series = make_series(factory, data)
    close = ClosePriceIndicator(factory)
    lowest = LowestValueIndicator(close, bar_count)
    highest = HighestValueIndicator(close, bar_count)

    for i, bar in enumerate(series):
        lowest.on_bar(bar)
        highest.on_bar(bar)
        window = data[max(0, i - bar_count + 1) : i + 1]
        assert float(lowest.value) == pytest.approx(window.min())
        assert float(highest.value) == pytest.approx(window.max())
        assert lowest.is_stable == (i + 1 >= bar_count)


def test_extrema_skip_nan(factory, make_series):
    series = make_series(factory, [5, math.nan, 3, math.nan, 4])
    close = ClosePriceIndicator(factory)
    lowest = LowestValueIndicator(close, 2)
    highest = HighestValueIndicator(close, 2)

    lows, highs, stable = [], [], []
    for bar in series:
        lows.append(float(lowest.on_bar(bar)))
        highs.append(float(highest.on_bar(bar)))
        stable.append(lowest.is_stable)
    assert lows == [5, 5, 3, 3, 3]
    assert highs == [5, 5, 5, 5, 4]
    assert stable == [False, False, True, True, True]


def test_extremum_is_nan_before_first_valid_value(factory, make_series):
    series = make_series(factory, [math.nan, 2])
    lowest = LowestValueIndicator(ClosePriceIndicator(factory), 3)
    assert lowest.on_bar(series[0]).is_nan()
    assert lowest.on_bar(series[1]) == 2


def test_running_total_and_sma(factory, make_series):
    series = make_series(factory, [1, 2, 3, 4, 5])
    close = ClosePriceIndicator(factory)
    total = RunningTotalIndicator(close, 3)
    sma = SMAIndicator(close, 3)

    totals, means = [], []
    for bar in series:
        totals.append(float(total.on_bar(bar)))
        means.append(float(sma.on_bar(bar)))
    assert totals == [1, 3, 6, 9, 12]
    assert means == pytest.approx([1, 1.5, 2, 3, 4])


def test_running_total_ignores_nan(factory, make_series):
    series = make_series(factory, [1, math.nan, 2, 3])
    total = RunningTotalIndicator(ClosePriceIndicator(factory), 2)
    assert [float(total.on_bar(bar)) for bar in series] == [1, 1, 3, 5]
    assert total.observed == 3


def test_previous_value(factory, make_series):
    series = make_series(factory, [1, 2, 3, 4])
    prev = PreviousValueIndicator(ClosePriceIndicator(factory), 2)
    values = [prev.on_bar(bar) for bar in series]
    assert values[0].is_nan() and values[1].is_nan()
    assert [float(v) for v in values[2:]] == [1, 2]
    assert prev.is_stable
    assert prev.lag == 2


@pytest.mark.parametrize("cls", [LowestValueIndicator, HighestValueIndicator, RunningTotalIndicator, SMAIndicator])
def test_stability_is_monotonic(factory, make_series, cls):
    series = make_series(factory, range(1, 12))
    ind = cls(ClosePriceIndicator(factory), 4)
    assert ind.lag == 4

    flags = []
    for bar in series:
        ind.on_bar(bar)
        flags.append(ind.is_stable)
    assert flags == [False] * 3 + [True] * 8


@pytest.mark.parametrize("cls", [LowestValueIndicator, HighestValueIndicator, RunningTotalIndicator, SMAIndicator])
@pytest.mark.parametrize("bar_count", [0, -3])
def test_non_positive_window_raises(factory, cls, bar_count):
    with pytest.raises(ValueError):
        cls(ClosePriceIndicator(factory), bar_count)


def test_previous_value_rejects_non_positive_offset(factory):
    with pytest.raises(ValueError):
        PreviousValueIndicator(ClosePriceIndicator(factory), 0)
