# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from loguru import logger

from ta_stream.num import DecimalNumFactory, DoubleNumFactory
from ta_stream.series import BarSeries

T0 = datetime(2024, 1, 1)
DAY = timedelta(days=1)


@pytest.fixture(autouse=True)
def disable_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture(params=["double", "decimal"])
def factory(request):
    """Every numeric backend, like a parametrized test source."""
    if request.param == "double":
        return DoubleNumFactory()
    return DecimalNumFactory()


@pytest.fixture
def make_series():
    """Build a BarSeries of flat bars (open = high = low = close) from closes."""

    def _make(factory, closes, start: datetime = T0, period: timedelta = DAY) -> BarSeries:
        series = BarSeries(factory, name="test")
        for i, close in enumerate(closes):
            close = float(close)
            series.add_bar_values(start + i * period, period, close, close, close, close, 1000)
        return series

    return _make
