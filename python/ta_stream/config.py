"""Configuration objects.

Style rules:
- keep signatures stable (no alias chaos)
- prefer explicit field names
- nothing here is a process-wide default: configs are passed explicitly
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .num import DEFAULT_PRECISION, NumBackend, NumFactory


@dataclass(frozen=True)
class NumConfig:
    """Numeric backend for one computation graph."""

    backend: str = NumBackend.DOUBLE.value  # 'double' or 'decimal'
    # significant digits, decimal backend only
    precision: int = DEFAULT_PRECISION

    def __post_init__(self):
        NumBackend(self.backend)
        if self.precision <= 0:
            raise ValueError("precision must be positive")


@dataclass(frozen=True)
class CostConfig:
    """Transaction and holding costs."""

    # proportional fee on every trade value (entry and exit)
    commission_rate: float = 0.0

    # Short borrow cost (annual) -> charged per whole day while a short is open
    short_borrow_annual_rate: float = 0.0

    # Day-count convention for converting annual borrow rate to daily.
    short_borrow_day_count: int = 365

    def __post_init__(self):
        if self.commission_rate < 0:
            raise ValueError("commission_rate must be non-negative")
        if self.short_borrow_annual_rate < 0:
            raise ValueError("short_borrow_annual_rate must be non-negative")
        if self.short_borrow_day_count <= 0:
            raise ValueError("short_borrow_day_count must be positive")


@dataclass(frozen=True)
class LogConfig:
    """Loguru sink configuration used by ``logging_utils.setup_logging``."""

    level: str = "INFO"
    # 'stderr', 'stdout' or a file path
    sink: str = "stderr"
    fmt: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{line} | {message}"


@dataclass(frozen=True)
class BacktestConfig:
    """Backtest run configuration.

    Notes:
    - trades execute at the close of the bar on which the signal fires
    - ``unstable_bars`` skips signals during the first N bars in addition to
      the indicators' own stability flags
    """

    name: str = "strategy"

    # 'BUY' opens longs, 'SELL' opens shorts
    trade_type: str = "BUY"
    amount: float = 1.0
    unstable_bars: int = 0

    num: NumConfig = field(default_factory=NumConfig)
    cost: CostConfig = field(default_factory=CostConfig)

    def __post_init__(self):
        if self.trade_type.upper() not in {"BUY", "SELL"}:
            raise ValueError(f"trade_type must be 'BUY' or 'SELL', got {self.trade_type!r}")
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.unstable_bars < 0:
            raise ValueError("unstable_bars must be non-negative")

    @classmethod
    def from_params_dict(cls, d: dict) -> "BacktestConfig":
        """Create BacktestConfig from a flat parameter dict.

        Keys are typically PascalCase (e.g., CommissionRate). Unknown keys are ignored.
        """
        mapping = {
            "Name": "name",
            "TradeType": "trade_type",
            "Amount": "amount",
            "UnstableBars": "unstable_bars",
        }
        num_mapping = {
            "NumBackend": "backend",
            "Precision": "precision",
        }
        cost_mapping = {
            "CommissionRate": "commission_rate",
            "ShortBorrowAnnualRate": "short_borrow_annual_rate",
            "ShortBorrowDayCount": "short_borrow_day_count",
        }
        kwargs, num_kwargs, cost_kwargs = {}, {}, {}
        for k, v in (d or {}).items():
            if k in mapping:
                kwargs[mapping[k]] = v
            elif k in num_mapping:
                num_kwargs[num_mapping[k]] = v
            elif k in cost_mapping:
                cost_kwargs[cost_mapping[k]] = v

        if isinstance(kwargs.get("trade_type"), str):
            kwargs["trade_type"] = kwargs["trade_type"].upper()
        if isinstance(num_kwargs.get("backend"), str):
            num_kwargs["backend"] = num_kwargs["backend"].lower()

        return cls(num=NumConfig(**num_kwargs), cost=CostConfig(**cost_kwargs), **kwargs)


def num_factory_from_config(cfg: NumConfig) -> NumFactory:
    """Factory for the configured backend; one per computation graph."""
    return NumFactory.create(cfg.backend, precision=cfg.precision)
