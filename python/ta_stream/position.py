"""Trades and positions.

A position goes through ``EMPTY -> OPEN -> CLOSED``. ``CLOSED`` is terminal;
the trading record creates a new ``Position`` for the next round trip.

Valuation ratio used by cash flows and returns:
- long:  ``price / entry``
- short: ``1 + (entry - price) / entry``

where ``entry`` is the entry trade's net price and ``price`` has the
per-asset holding cost subtracted (long) or added (short) first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from loguru import logger

from .cost_model import CostModel, ZeroCostModel
from .errors import PositionStateError, TimeRewindError
from .num import NaN, Num, NumFactory
from .types import Bar, OrderType, TradeType


@dataclass(frozen=True)
class Trade:
    """A single execution (entry or exit)."""

    when_executed: datetime
    trade_type: TradeType
    order_type: OrderType
    price_per_asset: Num
    amount: Num
    cost: Num

    @classmethod
    def execute(
        cls,
        when: datetime,
        trade_type: TradeType,
        order_type: OrderType,
        price: Num,
        amount: Num,
        cost_model: CostModel,
    ) -> "Trade":
        return cls(
            when_executed=when,
            trade_type=trade_type,
            order_type=order_type,
            price_per_asset=price,
            amount=amount,
            cost=cost_model.calculate_trade(price, amount),
        )

    @property
    def is_buy(self) -> bool:
        return self.trade_type is TradeType.BUY

    @property
    def is_sell(self) -> bool:
        return self.trade_type is TradeType.SELL

    @property
    def value(self) -> Num:
        return self.price_per_asset * self.amount

    @property
    def net_price(self) -> Num:
        """Price per asset including the transaction cost (higher for buys, lower for sells)."""
        if self.amount.is_zero():
            return self.price_per_asset
        per_asset = self.cost / self.amount
        if self.is_buy:
            return self.price_per_asset + per_asset
        return self.price_per_asset - per_asset


class PositionState(str, Enum):
    EMPTY = "EMPTY"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Position:
    """One entry trade and, once closed, one exit trade."""

    def __init__(
        self,
        factory: NumFactory,
        starting_type: TradeType = TradeType.BUY,
        transaction_cost_model: Optional[CostModel] = None,
        holding_cost_model: Optional[CostModel] = None,
    ):
        self.factory = factory
        self.starting_type = TradeType(starting_type)
        self.transaction_cost_model = transaction_cost_model or ZeroCostModel()
        self.holding_cost_model = holding_cost_model or ZeroCostModel()
        self.entry: Optional[Trade] = None
        self.exit: Optional[Trade] = None
        # (bar end time, close) seen while open
        self._prices: List[Tuple[datetime, Num]] = []

    # ---------- state ----------

    @property
    def state(self) -> PositionState:
        if self.entry is None:
            return PositionState.EMPTY
        if self.exit is None:
            return PositionState.OPEN
        return PositionState.CLOSED

    @property
    def is_new(self) -> bool:
        return self.entry is None

    @property
    def is_opened(self) -> bool:
        return self.entry is not None and self.exit is None

    @property
    def is_closed(self) -> bool:
        return self.exit is not None

    @property
    def is_long(self) -> bool:
        return self.starting_type is TradeType.BUY

    @property
    def is_short(self) -> bool:
        return self.starting_type is TradeType.SELL

    # ---------- transitions ----------

    def operate(self, when: datetime, price, amount=None) -> Trade:
        """Enter if empty, exit if open."""
        if self.is_new:
            return self.enter(when, price, amount)
        if self.is_opened:
            return self.close(when, price, amount)
        raise PositionStateError("cannot operate on a closed position")

    def enter(self, when: datetime, price, amount=None) -> Trade:
        if not self.is_new:
            raise PositionStateError(f"cannot enter a position in state {self.state.value}")
        price = self.factory.num_of(price)
        amount = self.factory.one if amount is None else self.factory.num_of(amount)
        self.entry = Trade.execute(
            when, self.starting_type, OrderType.OPEN, price, amount, self.transaction_cost_model
        )
        logger.debug("{} entry at {} price={} amount={}", self.starting_type.value, when, price, amount)
        return self.entry

    def close(self, when: datetime, price, amount=None) -> Trade:
        if not self.is_opened:
            raise PositionStateError(f"cannot exit a position in state {self.state.value}")
        if when < self.entry.when_executed:
            raise TimeRewindError(f"exit at {when} precedes entry at {self.entry.when_executed}")
        price = self.factory.num_of(price)
        amount = self.entry.amount if amount is None else self.factory.num_of(amount)
        self.exit = Trade.execute(
            when, self.starting_type.complement, OrderType.CLOSE, price, amount, self.transaction_cost_model
        )
        logger.debug("{} exit at {} price={} amount={}", self.exit.trade_type.value, when, price, amount)
        return self.exit

    def on_bar(self, bar: Bar) -> None:
        """Record the bar close while the position is open."""
        if not self.is_opened:
            return
        t = bar.end_time
        if t <= self.last_seen_time:
            return
        self._prices.append((t, bar.close_price))

    # ---------- price history ----------

    @property
    def last_seen_time(self) -> Optional[datetime]:
        if self._prices:
            return self._prices[-1][0]
        return self.entry.when_executed if self.entry is not None else None

    @property
    def last_price(self) -> Num:
        if self._prices:
            return self._prices[-1][1]
        return self.entry.price_per_asset if self.entry is not None else NaN

    def time_in_trade(self, final_time: Optional[datetime] = None) -> timedelta:
        """Time from entry up to ``final_time`` (default: exit, or last seen bar while open), capped at the exit."""
        if self.entry is None:
            return timedelta(0)
        if self.exit is not None:
            end = self.exit.when_executed
            if final_time is not None:
                end = min(end, final_time)
        else:
            end = final_time if final_time is not None else self.last_seen_time
        return max(timedelta(0), end - self.entry.when_executed)

    # ---------- costs ----------

    @property
    def transaction_cost(self) -> Num:
        total = self.factory.zero
        for trade in (self.entry, self.exit):
            if trade is not None:
                total = total + trade.cost
        return total

    def holding_cost(self, final_time: Optional[datetime] = None) -> Num:
        return self.holding_cost_model.calculate_position(self, final_time)

    def position_cost(self, final_time: Optional[datetime] = None) -> Num:
        return self.transaction_cost + self.holding_cost(final_time)

    # ---------- profit & return ----------

    def _gross(self, exit_price: Num, amount: Num) -> Num:
        gross = exit_price * amount - self.entry.value
        return -gross if self.is_short else gross

    @property
    def gross_profit(self) -> Num:
        """Price difference times amount (sign-adjusted for shorts); zero unless closed."""
        if not self.is_closed:
            return self.factory.zero
        return self._gross(self.exit.price_per_asset, self.exit.amount)

    @property
    def profit(self) -> Num:
        """Gross profit minus transaction and holding costs; zero unless closed."""
        if not self.is_closed:
            return self.factory.zero
        return self.gross_profit - self.position_cost()

    def unrealized_profit(self, final_price, final_time: Optional[datetime] = None) -> Num:
        if self.is_closed:
            return self.profit
        if self.entry is None:
            return self.factory.zero
        final_price = self.factory.num_of(final_price)
        gross = self._gross(final_price, self.entry.amount)
        return gross - self.position_cost(final_time)

    @property
    def gross_return(self) -> Num:
        """Exit/entry price ratio before costs; one unless closed."""
        if not self.is_closed:
            return self.factory.one
        ratio = self.exit.price_per_asset / self.entry.price_per_asset
        if self.is_short:
            return self.factory.two - ratio
        return ratio

    @property
    def is_profitable(self) -> bool:
        return self.profit.is_positive()

    def value_ratio(self, price, at: Optional[datetime] = None) -> Num:
        """Value of the position relative to its entry if marked at ``price`` at time ``at``."""
        if self.entry is None:
            return self.factory.one
        price = self.factory.num_of(price)
        entry_price = self.entry.net_price
        holding_per_asset = self.holding_cost(at) / self.entry.amount
        if self.is_short:
            adjusted = price + holding_per_asset
            return self.factory.one + (entry_price - adjusted) / entry_price
        adjusted = price - holding_per_asset
        return adjusted / entry_price

    @property
    def realized_ratio(self) -> Num:
        """Net value ratio at the exit; one unless closed."""
        if not self.is_closed:
            return self.factory.one
        return self.value_ratio(self.exit.net_price, self.exit.when_executed)

    # ---------- cash flow ----------

    def cash_flow(self) -> List[Tuple[datetime, Num]]:
        """Mark-to-market ``(time, ratio)`` points: one at entry, one per recorded bar."""
        if self.entry is None:
            return []
        points = {self.entry.when_executed: self.factory.one}
        for t, close in self._prices:
            if self.exit is not None and t > self.exit.when_executed:
                break
            points[t] = self.value_ratio(close, t)
        if self.exit is not None:
            points[self.exit.when_executed] = self.realized_ratio
        return sorted(points.items(), key=lambda kv: kv[0])

    @property
    def max_drawdown(self) -> Num:
        """Largest peak-to-trough decline of the mark-to-market ratio."""
        peak = self.factory.one
        worst = self.factory.zero
        for _, value in self.cash_flow():
            if value.is_nan():
                continue
            peak = peak.max(value)
            drawdown = (peak - value) / peak
            worst = worst.max(drawdown)
        return worst

    def __repr__(self) -> str:
        return (
            f"Position({self.starting_type.value}, state={self.state.value}, "
            f"entry={self.entry}, exit={self.exit})"
        )
