"""Analysis criteria: pure scoring functions over a position or a trading record.

The record-level value is criterion specific (total return multiplies
position returns, drawdown walks the whole cash-flow path). Rank results
with ``better_than`` rather than raw comparisons.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import Iterable, List, Optional, Union

from .cashflow import CashFlow, Returns, ReturnType
from .num import Num
from .position import Position
from .series import BarSeries
from .trading_record import TradingRecord
from .types import TradeType

Subject = Union[Position, TradingRecord]


class AnalysisCriterion(ABC):
    less_is_better: bool = False

    def calculate(self, subject: Subject) -> Num:
        if isinstance(subject, Position):
            return self.calculate_position(subject)
        if isinstance(subject, TradingRecord):
            return self.calculate_record(subject)
        raise TypeError(f"expected Position or TradingRecord, got {type(subject).__name__}")

    @abstractmethod
    def calculate_position(self, position: Position) -> Num:
        ...

    @abstractmethod
    def calculate_record(self, record: TradingRecord) -> Num:
        ...

    def better_than(self, a: Num, b: Num) -> bool:
        """True if ``a`` ranks strictly better than ``b``. NaN never ranks better."""
        if a.is_nan():
            return False
        if b.is_nan():
            return True
        return a < b if self.less_is_better else a > b

    def choose_best(self, records: Iterable[TradingRecord]) -> Optional[TradingRecord]:
        best, best_value = None, None
        for record in records:
            value = self.calculate_record(record)
            if best is None or self.better_than(value, best_value):
                best, best_value = record, value
        return best

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.name}(less_is_better={self.less_is_better})"


# ---------- counts ----------


class NumberOfPositionsCriterion(AnalysisCriterion):
    less_is_better = True

    def calculate_position(self, position: Position) -> Num:
        return position.factory.one

    def calculate_record(self, record: TradingRecord) -> Num:
        return record.factory.num_of(len(record.positions))


class NumberOfWinningPositionsCriterion(AnalysisCriterion):
    def calculate_position(self, position: Position) -> Num:
        return position.factory.one if position.profit.is_positive() else position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        return record.factory.num_of(sum(1 for p in record.positions if p.profit.is_positive()))


class NumberOfLosingPositionsCriterion(AnalysisCriterion):
    less_is_better = True

    def calculate_position(self, position: Position) -> Num:
        return position.factory.one if position.profit.is_negative() else position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        return record.factory.num_of(sum(1 for p in record.positions if p.profit.is_negative()))


class WinningPositionsRatioCriterion(AnalysisCriterion):
    """Share of closed positions with a positive profit; zero for an empty record."""

    def calculate_position(self, position: Position) -> Num:
        return NumberOfWinningPositionsCriterion().calculate_position(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        if not record.positions:
            return record.factory.zero
        winners = NumberOfWinningPositionsCriterion().calculate_record(record)
        return winners / len(record.positions)


class PositionFilter(str, Enum):
    PROFIT = "profit"
    LOSS = "loss"


class NumberOfConsecutivePositionsCriterion(AnalysisCriterion):
    """Longest run of consecutive winning (``PROFIT``) or losing (``LOSS``) closed positions.

    More consecutive winners is better, fewer consecutive losers is better.
    """

    def __init__(self, position_filter: PositionFilter = PositionFilter.PROFIT):
        self.position_filter = PositionFilter(position_filter)
        self.less_is_better = self.position_filter is PositionFilter.LOSS

    def _matches(self, position: Position) -> bool:
        if not position.is_closed:
            return False
        if self.position_filter is PositionFilter.PROFIT:
            return position.profit.is_positive()
        return position.profit.is_negative()

    def calculate_position(self, position: Position) -> Num:
        return position.factory.one if self._matches(position) else position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        longest = run = 0
        for p in record.positions:
            run = run + 1 if self._matches(p) else 0
            longest = max(longest, run)
        return record.factory.num_of(longest)


# ---------- profit and loss ----------


class ProfitLossCriterion(AnalysisCriterion):
    """Net profit (after costs) of closed positions."""

    def calculate_position(self, position: Position) -> Num:
        return position.profit

    def calculate_record(self, record: TradingRecord) -> Num:
        total = record.factory.zero
        for p in record.positions:
            total = total + p.profit
        return total


class ProfitCriterion(AnalysisCriterion):
    """Sum of the net profits of winning positions."""

    def calculate_position(self, position: Position) -> Num:
        profit = position.profit
        return profit if profit.is_positive() else position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        total = record.factory.zero
        for p in record.positions:
            total = total + self.calculate_position(p)
        return total


class LossCriterion(AnalysisCriterion):
    """Sum of the net losses of losing positions (a non-positive number)."""

    def calculate_position(self, position: Position) -> Num:
        profit = position.profit
        return profit if profit.is_negative() else position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        total = record.factory.zero
        for p in record.positions:
            total = total + self.calculate_position(p)
        return total


class ProfitLossRatioCriterion(AnalysisCriterion):
    """Average win divided by the absolute average loss.

    Zero without winners, one with winners but no losers.
    """

    def _ratio(self, subject: Subject) -> Num:
        factory = subject.factory
        winners = NumberOfWinningPositionsCriterion().calculate(subject)
        losers = NumberOfLosingPositionsCriterion().calculate(subject)
        if winners.is_zero():
            return factory.zero
        if losers.is_zero():
            return factory.one
        avg_profit = ProfitCriterion().calculate(subject) / winners
        avg_loss = LossCriterion().calculate(subject) / losers
        return abs(avg_profit / avg_loss)

    def calculate_position(self, position: Position) -> Num:
        return self._ratio(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        return self._ratio(record)


class ExpectancyCriterion(AnalysisCriterion):
    """``(1 + profit/loss ratio) * win probability - 1``; zero for an empty record."""

    def calculate_position(self, position: Position) -> Num:
        if not position.is_closed:
            return position.factory.zero
        win = NumberOfWinningPositionsCriterion().calculate_position(position)
        ratio = ProfitLossRatioCriterion().calculate_position(position)
        return (position.factory.one + ratio) * win - position.factory.one

    def calculate_record(self, record: TradingRecord) -> Num:
        if not record.positions:
            return record.factory.zero
        win = WinningPositionsRatioCriterion().calculate_record(record)
        ratio = ProfitLossRatioCriterion().calculate_record(record)
        return (record.factory.one + ratio) * win - record.factory.one


class TransactionCostCriterion(AnalysisCriterion):
    less_is_better = True

    def calculate_position(self, position: Position) -> Num:
        return position.transaction_cost

    def calculate_record(self, record: TradingRecord) -> Num:
        total = record.factory.zero
        for p in record.all_positions():
            total = total + p.transaction_cost
        return total


# ---------- return and risk ----------


class ReturnCriterion(AnalysisCriterion):
    """Net return after costs, compounded across positions.

    With ``add_base`` (default) a 10% gain is 1.1, otherwise 0.1.
    """

    def __init__(self, add_base: bool = True):
        self.add_base = add_base

    def _finish(self, ratio: Num) -> Num:
        return ratio if self.add_base else ratio - ratio.factory.one

    def calculate_position(self, position: Position) -> Num:
        return self._finish(position.realized_ratio)

    def calculate_record(self, record: TradingRecord) -> Num:
        ratio = record.factory.one
        for p in record.positions:
            ratio = ratio * p.realized_ratio
        return self._finish(ratio)


class EnterAndHoldReturnCriterion(AnalysisCriterion):
    """Return of entering at the first close of ``series`` and exiting at the last.

    The buy-and-hold baseline a strategy is ranked against. The value only
    depends on the series and ``trade_type``; it is one for an empty series
    and for a position that is not closed.
    """

    def __init__(self, series: BarSeries, trade_type: TradeType = TradeType.BUY):
        self.series = series
        self.trade_type = TradeType(trade_type)

    def _hold_return(self) -> Num:
        factory = self.series.factory
        if len(self.series) == 0:
            return factory.one
        ratio = self.series.last_bar.close_price / self.series.first_bar.close_price
        if self.trade_type is TradeType.SELL:
            return factory.two - ratio
        return ratio

    def calculate_position(self, position: Position) -> Num:
        if not position.is_closed:
            return self.series.factory.one
        return self._hold_return()

    def calculate_record(self, record: TradingRecord) -> Num:
        return self._hold_return()


class AverageReturnPerBarCriterion(AnalysisCriterion):
    """Geometric mean return per ``unit`` of time in trade: ``return ** (1 / units)``.

    One when no time was spent in a position.
    """

    def __init__(self, unit: timedelta = timedelta(days=1)):
        if unit <= timedelta(0):
            raise ValueError("unit must be positive")
        self.unit = unit

    def _per_unit(self, total_return: Num, held: timedelta) -> Num:
        units = held / self.unit
        if units <= 0:
            return total_return.factory.one
        return total_return ** (1.0 / units)

    def calculate_position(self, position: Position) -> Num:
        if not position.is_closed:
            return position.factory.one
        return self._per_unit(ReturnCriterion().calculate_position(position), position.time_in_trade())

    def calculate_record(self, record: TradingRecord) -> Num:
        held = sum((p.time_in_trade() for p in record.positions), timedelta(0))
        return self._per_unit(ReturnCriterion().calculate_record(record), held)


class MaximumDrawdownCriterion(AnalysisCriterion):
    """Largest peak-to-trough decline of the mark-to-market cash flow."""

    less_is_better = True

    def calculate_position(self, position: Position) -> Num:
        return position.max_drawdown

    def calculate_record(self, record: TradingRecord) -> Num:
        return CashFlow(record).max_drawdown()


class ReturnOverMaxDrawdownCriterion(AnalysisCriterion):
    """Net return divided by the maximum drawdown.

    Without any drawdown the net return itself is reported; an empty record
    or an unclosed position scores zero.
    """

    def _ratio(self, subject: Subject) -> Num:
        net = ReturnCriterion(add_base=False).calculate(subject)
        drawdown = MaximumDrawdownCriterion().calculate(subject)
        if drawdown.is_zero():
            return net
        return net / drawdown

    def calculate_position(self, position: Position) -> Num:
        if not position.is_closed:
            return position.factory.zero
        return self._ratio(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        if not record.positions:
            return record.factory.zero
        return self._ratio(record)


def _tail_returns(subject: Subject, confidence: float) -> List[Num]:
    returns = Returns(CashFlow(subject), ReturnType.LOG)
    ordered = sorted(r for r in returns.values if not r.is_nan())
    if not ordered:
        return []
    cutoff = min(len(ordered) - 1, int(math.floor(len(ordered) * (1.0 - confidence))))
    return ordered[: cutoff + 1]


class ValueAtRiskCriterion(AnalysisCriterion):
    """Historical value at risk of the per-bar log returns (a non-positive number)."""

    def __init__(self, confidence: float = 0.95):
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in (0, 1)")
        self.confidence = confidence

    def _var(self, subject: Subject) -> Num:
        tail = _tail_returns(subject, self.confidence)
        if not tail:
            return subject.factory.zero
        return tail[-1].min(subject.factory.zero)

    def calculate_position(self, position: Position) -> Num:
        return self._var(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        return self._var(record)


class ExpectedShortfallCriterion(AnalysisCriterion):
    """Mean of the log returns at or below the value-at-risk level (a non-positive number)."""

    def __init__(self, confidence: float = 0.95):
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in (0, 1)")
        self.confidence = confidence

    def _shortfall(self, subject: Subject) -> Num:
        tail = _tail_returns(subject, self.confidence)
        if not tail:
            return subject.factory.zero
        total = subject.factory.zero
        for r in tail:
            total = total + r
        return (total / len(tail)).min(subject.factory.zero)

    def calculate_position(self, position: Position) -> Num:
        return self._shortfall(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        return self._shortfall(record)
