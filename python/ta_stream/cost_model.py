"""Transaction and holding cost models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from .config import CostConfig
from .num import Num

if TYPE_CHECKING:
    from .position import Position


class CostModel(ABC):
    @abstractmethod
    def calculate_trade(self, price: Num, amount: Num) -> Num:
        """Cost of a single trade of ``amount`` assets at ``price``."""

    @abstractmethod
    def calculate_position(self, position: "Position", final_time: Optional[datetime] = None) -> Num:
        """Total cost of ``position``, accrued up to ``final_time`` while open."""


class ZeroCostModel(CostModel):
    def calculate_trade(self, price: Num, amount: Num) -> Num:
        return price.factory.zero

    def calculate_position(self, position: "Position", final_time: Optional[datetime] = None) -> Num:
        return position.factory.zero

    def __repr__(self) -> str:
        return "ZeroCostModel()"


class LinearTransactionCostModel(CostModel):
    """Fee proportional to the traded value."""

    def __init__(self, fee_rate: float):
        if fee_rate < 0:
            raise ValueError("fee_rate must be non-negative")
        self.fee_rate = fee_rate

    def calculate_trade(self, price: Num, amount: Num) -> Num:
        return price * amount * self.fee_rate

    def calculate_position(self, position: "Position", final_time: Optional[datetime] = None) -> Num:
        total = position.factory.zero
        for trade in (position.entry, position.exit):
            if trade is not None:
                total = total + trade.cost
        return total

    def __repr__(self) -> str:
        return f"LinearTransactionCostModel(fee_rate={self.fee_rate})"


class FixedTransactionCostModel(CostModel):
    """Flat fee per executed trade."""

    def __init__(self, fee_per_trade: float):
        if fee_per_trade < 0:
            raise ValueError("fee_per_trade must be non-negative")
        self.fee_per_trade = fee_per_trade

    def calculate_trade(self, price: Num, amount: Num) -> Num:
        return price.factory.num_of(self.fee_per_trade)

    def calculate_position(self, position: "Position", final_time: Optional[datetime] = None) -> Num:
        trades = sum(1 for trade in (position.entry, position.exit) if trade is not None)
        return position.factory.num_of(self.fee_per_trade * trades)

    def __repr__(self) -> str:
        return f"FixedTransactionCostModel(fee_per_trade={self.fee_per_trade})"


class LinearBorrowingCostModel(CostModel):
    """Borrow fee charged per whole period a position is held.

    cost = entry value * fee_per_period * whole periods held. The holding
    window ends at ``final_time`` (capped at the exit trade); without it, at
    the exit or, while open, at the last bar the position has seen. With
    ``shorts_only`` long positions are free.
    """

    def __init__(self, fee_per_period: float, period: timedelta = timedelta(days=1), shorts_only: bool = False):
        if fee_per_period < 0:
            raise ValueError("fee_per_period must be non-negative")
        if period <= timedelta(0):
            raise ValueError("period must be positive")
        self.fee_per_period = fee_per_period
        self.period = period
        self.shorts_only = shorts_only

    def calculate_trade(self, price: Num, amount: Num) -> Num:
        return price.factory.zero

    def calculate_position(self, position: "Position", final_time: Optional[datetime] = None) -> Num:
        entry = position.entry
        if entry is None or (self.shorts_only and entry.is_buy):
            return position.factory.zero
        held = position.time_in_trade(final_time)
        periods = max(0, held // self.period)
        return entry.value * self.fee_per_period * periods

    def __repr__(self) -> str:
        return f"LinearBorrowingCostModel(fee_per_period={self.fee_per_period}, period={self.period}, shorts_only={self.shorts_only})"


@dataclass(frozen=True)
class CostModels:
    transaction: CostModel
    holding: CostModel


def cost_models_from_config(cfg: CostConfig) -> CostModels:
    """Commission -> linear transaction cost; annual borrow rate -> daily borrowing cost."""
    transaction: CostModel = ZeroCostModel()
    if cfg.commission_rate > 0:
        transaction = LinearTransactionCostModel(cfg.commission_rate)

    holding: CostModel = ZeroCostModel()
    if cfg.short_borrow_annual_rate > 0:
        daily = float(cfg.short_borrow_annual_rate) / float(cfg.short_borrow_day_count)
        holding = LinearBorrowingCostModel(daily, period=timedelta(days=1), shorts_only=True)
    return CostModels(transaction=transaction, holding=holding)
