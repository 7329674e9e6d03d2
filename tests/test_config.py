from __future__ import annotations

import pytest

from ta_stream.config import BacktestConfig, NumConfig, num_factory_from_config
from ta_stream.num import DoubleNumFactory


def test_from_params_dict():
    cfg = BacktestConfig.from_params_dict(
        {
            "Name": "sweep",
            "TradeType": "sell",
            "Amount": 3,
            "UnstableBars": 10,
            "NumBackend": "DECIMAL",
            "Precision": 12,
            "CommissionRate": 0.001,
            "ShortBorrowAnnualRate": 0.05,
            "ShortBorrowDayCount": 360,
            "SomethingElse": 42,
        }
    )
    assert cfg.name == "sweep"
    assert cfg.trade_type == "SELL"
    assert cfg.amount == 3
    assert cfg.unstable_bars == 10
    assert cfg.num == NumConfig(backend="decimal", precision=12)
    assert cfg.cost.commission_rate == 0.001
    assert cfg.cost.short_borrow_annual_rate == 0.05
    assert cfg.cost.short_borrow_day_count == 360


def test_from_empty_params_dict_uses_defaults():
    assert BacktestConfig.from_params_dict({}) == BacktestConfig()
    assert isinstance(num_factory_from_config(BacktestConfig().num), DoubleNumFactory)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"trade_type": "HOLD"},
        {"amount": 0},
        {"unstable_bars": -1},
    ],
)
def test_invalid_backtest_config(kwargs):
    with pytest.raises(ValueError):
        BacktestConfig(**kwargs)


def test_invalid_num_config():
    with pytest.raises(ValueError):
        NumConfig(precision=0)
