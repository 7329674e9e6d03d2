"""Statistical wrappers that compose any criterion over per-position values.

Each wrapper carries its own ``less_is_better`` flag, independent of the
wrapped criterion's ranking direction.
"""

from __future__ import annotations

from typing import List, Optional

from .criteria import AnalysisCriterion, ProfitLossCriterion
from .num import Num
from .position import Position
from .trading_record import TradingRecord


class _StatisticCriterion(AnalysisCriterion):
    def __init__(self, criterion: AnalysisCriterion, less_is_better: bool = False):
        self.criterion = criterion
        self.less_is_better = less_is_better

    def _position_values(self, record: TradingRecord) -> List[Num]:
        return [self.criterion.calculate_position(p) for p in record.positions]

    def __repr__(self) -> str:
        return f"{self.name}({self.criterion!r}, less_is_better={self.less_is_better})"


class AverageCriterion(_StatisticCriterion):
    """Record value of the criterion divided by the number of positions; zero if empty."""

    def calculate_position(self, position: Position) -> Num:
        return self.criterion.calculate_position(position)

    def calculate_record(self, record: TradingRecord) -> Num:
        n = len(record.positions)
        if n == 0:
            return record.factory.zero
        return self.criterion.calculate_record(record) / n


class VarianceCriterion(_StatisticCriterion):
    """Population variance of the per-position criterion values."""

    def calculate_position(self, position: Position) -> Num:
        return position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        values = self._position_values(record)
        if not values:
            return record.factory.zero
        total = record.factory.zero
        for v in values:
            total = total + v
        mean = total / len(values)
        squares = record.factory.zero
        for v in values:
            squares = squares + (v - mean) * (v - mean)
        return squares / len(values)


class StandardDeviationCriterion(_StatisticCriterion):
    def calculate_position(self, position: Position) -> Num:
        return position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        return VarianceCriterion(self.criterion).calculate_record(record).sqrt()


class StandardErrorCriterion(_StatisticCriterion):
    """``stddev / sqrt(n)`` of the per-position criterion values."""

    def __init__(self, criterion: AnalysisCriterion, less_is_better: bool = True):
        super().__init__(criterion, less_is_better)

    def calculate_position(self, position: Position) -> Num:
        return position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        n = len(record.positions)
        if n == 0:
            return record.factory.zero
        stddev = StandardDeviationCriterion(self.criterion).calculate_record(record)
        return stddev / record.factory.num_of(n).sqrt()


class SqnCriterion(_StatisticCriterion):
    """System quality number: ``mean / stddev * sqrt(n)``.

    ``n_positions`` caps the sample size used for ``sqrt(n)`` once a record
    holds more than 100 positions.
    """

    def __init__(
        self,
        criterion: Optional[AnalysisCriterion] = None,
        n_positions: Optional[int] = None,
        less_is_better: bool = False,
    ):
        super().__init__(criterion or ProfitLossCriterion(), less_is_better)
        self.n_positions = n_positions

    def calculate_position(self, position: Position) -> Num:
        return position.factory.zero

    def calculate_record(self, record: TradingRecord) -> Num:
        n = len(record.positions)
        if n == 0:
            return record.factory.zero
        mean = AverageCriterion(self.criterion).calculate_record(record)
        stddev = StandardDeviationCriterion(self.criterion).calculate_record(record)
        if self.n_positions is not None and n > 100:
            n = self.n_positions
        return mean / stddev * record.factory.num_of(n).sqrt()
