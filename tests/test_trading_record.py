from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from ta_stream.errors import TimeRewindError
from ta_stream.trading_record import TradingRecord
from ta_stream.types import OrderType, TradeType

T0 = datetime(2024, 1, 1)
DAY = timedelta(days=1)


def test_enter_and_exit_flags(factory):
    record = TradingRecord(factory, name="flags")
    assert record.is_empty and record.is_closed
    assert not record.exit(T0, 100)

    assert record.enter(T0, 100)
    assert not record.enter(T0 + DAY, 105)
    assert not record.is_closed

    assert record.exit(T0 + 2 * DAY, 110)
    assert not record.exit(T0 + 3 * DAY, 120)
    assert record.is_closed
    assert record.position_count == 1
    assert len(record.trades) == 2
    assert record.current_position.is_new


def test_last_accessors(factory):
    record = TradingRecord(factory)
    assert record.last_trade is None
    assert record.last_entry is None and record.last_position is None

    record.enter(T0, 100)
    record.exit(T0 + DAY, 110)
    record.enter(T0 + 2 * DAY, 108)

    assert record.last_entry.price_per_asset == 108
    assert record.last_exit.price_per_asset == 110
    assert record.last_trade is record.last_entry
    assert record.get_last_trade(TradeType.SELL) is record.last_exit
    assert record.last_position.profit == 10
    assert len(record.all_positions()) == 2
    assert record.current_time == T0 + 2 * DAY
    assert record.current_price == 108


def test_trade_before_previous_trade_raises(factory):
    record = TradingRecord(factory)
    record.enter(T0, 100)
    record.exit(T0 + 2 * DAY, 100)
    with pytest.raises(TimeRewindError):
        record.enter(T0 + DAY, 100)
    assert record.current_position.is_new


def test_bar_rewind_raises(factory, make_series):
    series = make_series(factory, [1, 2, 3])
    record = TradingRecord(factory)
    record.on_bar(series[2])
    with pytest.raises(TimeRewindError):
        record.on_bar(series[1])
    # the same bar again is fine
    record.on_bar(series[2])
    assert record.current_price == 3


def test_trade_before_record_time_raises(factory, make_series):
    series = make_series(factory, [1, 2, 3, 4, 5])
    record = TradingRecord(factory)
    for bar in series:
        record.on_bar(bar)
    with pytest.raises(TimeRewindError):
        record.enter(series[1].end_time, 2)
    assert record.current_position.is_new
    assert record.trades == []

    # a trade at the record time itself is accepted
    assert record.enter(series[4].end_time, 5)
    assert record.current_time == series[4].end_time


def test_operate_alternates(factory):
    record = TradingRecord(factory)
    kinds = [record.operate(T0 + i * DAY, 100 + i).order_type for i in range(4)]
    assert kinds == [OrderType.OPEN, OrderType.CLOSE, OrderType.OPEN, OrderType.CLOSE]
    assert record.position_count == 2


def test_short_record(factory):
    record = TradingRecord(factory, TradeType.SELL)
    record.enter(T0, 100)
    record.exit(T0 + DAY, 80)
    assert record.last_entry.trade_type is TradeType.SELL
    assert record.last_exit.trade_type is TradeType.BUY
    assert record.last_position.profit == 20
    assert record.last_position.is_short


def test_maximum_drawdown(factory, make_series):
    series = make_series(factory, [100, 110, 99, 120])
    record = TradingRecord(factory)
    for i, bar in enumerate(series):
        record.on_bar(bar)
        if i == 0:
            record.enter(bar.end_time, bar.close_price)
        elif i == 3:
            record.exit(bar.end_time, bar.close_price)
    assert float(record.maximum_drawdown) == pytest.approx(0.1)


def test_empty_record_has_no_drawdown(factory):
    assert TradingRecord(factory).maximum_drawdown.is_zero()
