from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from ta_stream.config import CostConfig
from ta_stream.cost_model import (
    FixedTransactionCostModel,
    LinearBorrowingCostModel,
    LinearTransactionCostModel,
    ZeroCostModel,
    cost_models_from_config,
)
from ta_stream.errors import PositionStateError, TimeRewindError
from ta_stream.position import Position, PositionState
from ta_stream.types import OrderType, TradeType

T0 = datetime(2024, 1, 1)
DAY = timedelta(days=1)


def test_long_position_lifecycle(factory):
    p = Position(factory)
    assert p.state is PositionState.EMPTY and p.is_new

    entry = p.enter(T0, 100, 2)
    assert p.state is PositionState.OPEN and p.is_opened
    assert entry.trade_type is TradeType.BUY and entry.order_type is OrderType.OPEN
    assert entry.value == 200
    assert p.profit.is_zero()
    assert p.gross_return == 1

    exit_ = p.close(T0 + DAY, 110)
    assert p.state is PositionState.CLOSED and p.is_closed
    assert exit_.trade_type is TradeType.SELL and exit_.order_type is OrderType.CLOSE
    assert exit_.amount == 2
    assert p.profit == 20
    assert float(p.gross_return) == pytest.approx(1.1)
    assert float(p.realized_ratio) == pytest.approx(1.1)
    assert p.time_in_trade() == DAY


def test_short_position_profit_and_ratio(factory):
    p = Position(factory, TradeType.SELL)
    p.enter(T0, 100)
    exit_ = p.close(T0 + DAY, 70)
    assert exit_.trade_type is TradeType.BUY
    assert p.gross_profit == 30
    assert p.profit == 30
    assert float(p.gross_return) == pytest.approx(1.3)
    assert float(p.realized_ratio) == pytest.approx(1.3)


def test_losing_short(factory):
    p = Position(factory, TradeType.SELL)
    p.enter(T0, 100)
    p.close(T0 + DAY, 120)
    assert p.profit == -20
    assert float(p.realized_ratio) == pytest.approx(0.8)
    assert not p.is_profitable


def test_illegal_transitions_raise(factory):
    p = Position(factory)
    with pytest.raises(PositionStateError):
        p.close(T0, 100)
    p.enter(T0, 100)
    with pytest.raises(PositionStateError):
        p.enter(T0, 101)
    p.close(T0 + DAY, 100)
    with pytest.raises(PositionStateError):
        p.close(T0 + 2 * DAY, 100)
    with pytest.raises(PositionStateError):
        p.operate(T0 + 2 * DAY, 100)


def test_exit_before_entry_raises(factory):
    p = Position(factory)
    p.enter(T0 + DAY, 100)
    with pytest.raises(TimeRewindError):
        p.close(T0, 100)


def test_operate_alternates(factory):
    p = Position(factory)
    assert p.operate(T0, 10).order_type is OrderType.OPEN
    assert p.operate(T0 + DAY, 12).order_type is OrderType.CLOSE


def test_linear_transaction_cost(factory):
    model = LinearTransactionCostModel(0.01)
    p = Position(factory, transaction_cost_model=model)
    p.enter(T0, 100)
    p.close(T0 + DAY, 110)

    assert float(p.entry.cost) == pytest.approx(1.0)
    assert float(p.exit.cost) == pytest.approx(1.1)
    assert float(p.transaction_cost) == pytest.approx(2.1)
    assert float(model.calculate_position(p)) == pytest.approx(2.1)
    assert float(p.profit) == pytest.approx(7.9)
    assert float(p.entry.net_price) == pytest.approx(101.0)
    assert float(p.exit.net_price) == pytest.approx(108.9)
    assert float(p.realized_ratio) == pytest.approx(108.9 / 101.0)


def test_fixed_transaction_cost(factory):
    model = FixedTransactionCostModel(2.5)
    p = Position(factory, transaction_cost_model=model)
    p.enter(T0, 100, 5)
    assert float(p.entry.cost) == pytest.approx(2.5)
    assert float(p.entry.net_price) == pytest.approx(100.5)
    p.close(T0 + DAY, 100)
    assert float(model.calculate_position(p)) == pytest.approx(5.0)
    assert float(p.profit) == pytest.approx(-5.0)


def test_borrowing_cost_charges_whole_periods(factory):
    model = LinearBorrowingCostModel(0.01)
    long_ = Position(factory, holding_cost_model=model)
    long_.enter(T0, 100)
    long_.close(T0 + DAY, 110)
    assert float(long_.holding_cost()) == pytest.approx(1.0)

    short = Position(factory, TradeType.SELL, holding_cost_model=model)
    short.enter(T0, 100)
    short.close(T0 + 3 * DAY + timedelta(hours=5), 100)
    assert float(short.holding_cost()) == pytest.approx(3.0)
    assert float(short.profit) == pytest.approx(-3.0)
    # holding cost raises the effective buy-back price of the short
    assert float(short.realized_ratio) == pytest.approx(0.97)


def test_borrowing_cost_for_shorts_only(factory):
    model = LinearBorrowingCostModel(0.01, shorts_only=True)
    p = Position(factory, holding_cost_model=model)
    p.enter(T0, 100)
    p.close(T0 + 5 * DAY, 100)
    assert p.holding_cost().is_zero()


def test_open_position_accrues_holding_cost_until_last_bar(factory, make_series):
    series = make_series(factory, [100] * 5)
    p = Position(factory, TradeType.SELL, holding_cost_model=LinearBorrowingCostModel(0.01))
    p.enter(series[0].end_time, 100)
    for bar in series[1:]:
        p.on_bar(bar)
    assert p.time_in_trade() == 4 * DAY
    assert float(p.holding_cost()) == pytest.approx(4.0)
    assert float(p.holding_cost(series[0].end_time + 2 * DAY)) == pytest.approx(2.0)
    assert float(p.unrealized_profit(90)) == pytest.approx(10.0 - 4.0)


def test_price_history_only_while_open(factory, make_series):
    series = make_series(factory, [100, 110, 90, 120, 130])
    p = Position(factory)
    p.on_bar(series[0])
    p.enter(series[0].end_time, 100)
    for bar in series[1:4]:
        p.on_bar(bar)
    p.close(series[3].end_time, 120)
    p.on_bar(series[4])

    ratios = [float(v) for _, v in p.cash_flow()]
    assert ratios == pytest.approx([1.0, 1.1, 0.9, 1.2])
    assert float(p.max_drawdown) == pytest.approx((1.1 - 0.9) / 1.1)


def test_short_drawdown_follows_short_ratio(factory, make_series):
    series = make_series(factory, [100, 90, 110, 80])
    p = Position(factory, TradeType.SELL)
    p.enter(series[0].end_time, 100)
    for bar in series[1:]:
        p.on_bar(bar)
    ratios = [float(v) for _, v in p.cash_flow()]
    assert ratios == pytest.approx([1.0, 1.1, 0.9, 1.2])
    assert float(p.max_drawdown) == pytest.approx((1.1 - 0.9) / 1.1)


def test_cost_models_from_config():
    models = cost_models_from_config(CostConfig())
    assert isinstance(models.transaction, ZeroCostModel)
    assert isinstance(models.holding, ZeroCostModel)

    models = cost_models_from_config(
        CostConfig(commission_rate=0.001, short_borrow_annual_rate=0.0365, short_borrow_day_count=365)
    )
    assert isinstance(models.transaction, LinearTransactionCostModel)
    assert models.transaction.fee_rate == 0.001
    assert isinstance(models.holding, LinearBorrowingCostModel)
    assert models.holding.fee_per_period == pytest.approx(0.0001)
    assert models.holding.shorts_only


def test_invalid_cost_parameters():
    with pytest.raises(ValueError):
        LinearTransactionCostModel(-0.1)
    with pytest.raises(ValueError):
        LinearBorrowingCostModel(0.01, period=timedelta(0))
    with pytest.raises(ValueError):
        CostConfig(short_borrow_day_count=0)
