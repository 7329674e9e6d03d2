"""Shared types: bars and trade directions.

The guiding principle is to keep the runtime objects small and explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .num import Num


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def complement(self) -> "TradeType":
        return TradeType.SELL if self is TradeType.BUY else TradeType.BUY


class OrderType(str, Enum):
    """Whether a trade opens or closes its position."""

    OPEN = "OPEN"
    CLOSE = "CLOSE"


@dataclass(frozen=True)
class Bar:
    """OHLCV bar.

    All prices are ``Num`` values built by the series' factory.
    """

    begin_time: datetime
    end_time: datetime
    open_price: Num
    high_price: Num
    low_price: Num
    close_price: Num
    volume: Num

    def __post_init__(self):
        if self.end_time < self.begin_time:
            raise ValueError("end_time must not precede begin_time")

    @property
    def time_period(self) -> timedelta:
        return self.end_time - self.begin_time

    @property
    def is_bullish(self) -> bool:
        return self.open_price < self.close_price

    @property
    def is_bearish(self) -> bool:
        return self.open_price > self.close_price
