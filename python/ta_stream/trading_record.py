"""Trading record: closed positions plus the current (empty or open) one."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from loguru import logger

from .cost_model import CostModel, ZeroCostModel
from .errors import TimeRewindError
from .num import NaN, Num, NumFactory
from .position import Position, Trade
from .types import Bar, TradeType


class TradingRecord:
    """Ordered, non-overlapping history of positions for one strategy run.

    ``enter``/``exit`` return False when the current position is not in the
    matching state, so a strategy can signal repeatedly without checking.
    A trade timestamp earlier than the previous trade or the record clock
    raises ``TimeRewindError``.
    """

    def __init__(
        self,
        factory: NumFactory,
        starting_type: TradeType = TradeType.BUY,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
        name: str = "",
    ):
        self.factory = factory
        self.starting_type = TradeType(starting_type)
        self.transaction_cost_model = transaction_cost_model or ZeroCostModel()
        self.holding_cost_model = holding_cost_model or ZeroCostModel()
        self.name = name

        self.positions: List[Position] = []
        self.trades: List[Trade] = []
        self.current_position = self._new_position()
        self.current_time: Optional[datetime] = None
        self.current_price: Num = NaN

    def _new_position(self) -> Position:
        return Position(
            self.factory,
            self.starting_type,
            self.transaction_cost_model,
            self.holding_cost_model,
        )

    def _check_time(self, when: datetime) -> None:
        last = self.last_trade
        if last is not None and when < last.when_executed:
            raise TimeRewindError(f"trade at {when} precedes previous trade at {last.when_executed}")
        if self.current_time is not None and when < self.current_time:
            raise TimeRewindError(f"trade at {when} precedes record time {self.current_time}")

    def _track(self, when: datetime, price: Num) -> None:
        if self.current_time is None or when >= self.current_time:
            self.current_time = when
            self.current_price = price

    # ---------- market data ----------

    def on_bar(self, bar: Bar) -> None:
        """Advance the record's clock to ``bar`` and feed the open position."""
        if self.current_time is not None and bar.end_time < self.current_time:
            raise TimeRewindError(f"bar ending {bar.end_time} precedes record time {self.current_time}")
        self.current_time = bar.end_time
        self.current_price = bar.close_price
        self.current_position.on_bar(bar)

    # ---------- trading ----------

    def operate(self, when: datetime, price, amount=None) -> Trade:
        """Enter if the current position is empty, otherwise exit it."""
        if self.current_position.is_new:
            self.enter(when, price, amount)
        else:
            self.exit(when, price, amount)
        return self.trades[-1]

    def enter(self, when: datetime, price, amount=None) -> bool:
        if not self.current_position.is_new:
            return False
        self._check_time(when)
        trade = self.current_position.enter(when, price, amount)
        self.trades.append(trade)
        self._track(when, trade.price_per_asset)
        return True

    def exit(self, when: datetime, price, amount=None) -> bool:
        if not self.current_position.is_opened:
            return False
        self._check_time(when)
        trade = self.current_position.close(when, price, amount)
        self.trades.append(trade)
        self._track(when, trade.price_per_asset)
        closed = self.current_position
        self.positions.append(closed)
        self.current_position = self._new_position()
        logger.debug(
            "{} closed position #{}: profit={} ratio={}",
            self.name or "record",
            len(self.positions),
            closed.profit,
            closed.realized_ratio,
        )
        return True

    # ---------- queries ----------

    @property
    def is_closed(self) -> bool:
        """True when no position is currently open."""
        return not self.current_position.is_opened

    @property
    def is_empty(self) -> bool:
        return not self.trades

    @property
    def position_count(self) -> int:
        return len(self.positions)

    @property
    def last_trade(self) -> Optional[Trade]:
        return self.trades[-1] if self.trades else None

    def get_last_trade(self, trade_type: TradeType) -> Optional[Trade]:
        for trade in reversed(self.trades):
            if trade.trade_type is trade_type:
                return trade
        return None

    @property
    def last_entry(self) -> Optional[Trade]:
        return self.get_last_trade(self.starting_type)

    @property
    def last_exit(self) -> Optional[Trade]:
        return self.get_last_trade(self.starting_type.complement)

    @property
    def last_position(self) -> Optional[Position]:
        return self.positions[-1] if self.positions else None

    def all_positions(self) -> List[Position]:
        """Closed positions plus the current one if it is open."""
        if self.current_position.is_opened:
            return self.positions + [self.current_position]
        return list(self.positions)

    @property
    def maximum_drawdown(self) -> Num:
        from .cashflow import CashFlow

        return CashFlow(self).max_drawdown()

    def __repr__(self) -> str:
        return (
            f"TradingRecord(name={self.name!r}, positions={len(self.positions)}, "
            f"open={self.current_position.is_opened})"
        )
