"""CSV data provider, a standardized OHLCV schema and the BarSeries adapter."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

import pandas as pd
from loguru import logger

from .num import NumFactory
from .series import BarSeries


@dataclass(frozen=True)
class OhlcvFrame:
    """Standard OHLCV dataframe wrapper."""

    df: pd.DataFrame  # columns: Open, High, Low, Close, Volume; index: bar begin time
    symbol: str


def _standardize_ohlcv_columns(df: pd.DataFrame) -> pd.DataFrame:
    rename_map = {}
    for col in df.columns:
        c = str(col).strip().lower()
        if c == "open":
            rename_map[col] = "Open"
        elif c == "high":
            rename_map[col] = "High"
        elif c == "low":
            rename_map[col] = "Low"
        elif c == "close":
            rename_map[col] = "Close"
        elif c in {"adj close", "adjclose"}:
            # Keep adjusted close separate to avoid duplicate "Close" columns.
            rename_map[col] = "AdjClose"
        elif c == "volume":
            rename_map[col] = "Volume"
    df = df.rename(columns=rename_map).copy()

    # If the file only has AdjClose, use it as Close.
    if "Close" not in df.columns and "AdjClose" in df.columns:
        df = df.rename(columns={"AdjClose": "Close"})
    if "Close" in df.columns and "AdjClose" in df.columns:
        df = df.drop(columns=["AdjClose"])

    # volume is optional for price-only files
    if "Volume" not in df.columns:
        df["Volume"] = 0.0

    required = ["Open", "High", "Low", "Close", "Volume"]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required OHLCV columns: {missing}")

    df = df[required].astype(float)
    df = df[~df.index.duplicated(keep="last")].sort_index()
    return df


class CsvProvider:
    """Load OHLCV data from a CSV file."""

    def fetch(self, csv_path: str | Path, symbol: str, datetime_col: str = "Date") -> OhlcvFrame:
        path = Path(csv_path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        df = pd.read_csv(path)
        if datetime_col not in df.columns:
            # try common alternatives
            for cand in ["Datetime", "datetime", "timestamp", "Time", "time", "date"]:
                if cand in df.columns:
                    datetime_col = cand
                    break

        if datetime_col not in df.columns:
            raise ValueError(f"CSV must contain a datetime column. Tried '{datetime_col}' and common aliases.")

        df[datetime_col] = pd.to_datetime(df[datetime_col])
        df = df.set_index(datetime_col).sort_index()

        df = _standardize_ohlcv_columns(df)
        logger.debug("loaded {} rows for {} from {}", len(df), symbol, path)
        return OhlcvFrame(df=df, symbol=symbol)


def _infer_period(index: pd.DatetimeIndex) -> timedelta:
    if len(index) < 2:
        return timedelta(days=1)
    step = pd.Series(index).diff().dropna().median()
    return step.to_pytimedelta()


def to_bar_series(
    frame: OhlcvFrame,
    factory: NumFactory,
    period: Optional[timedelta] = None,
) -> BarSeries:
    """Convert an OHLCV frame into a ``BarSeries`` of ``factory`` values.

    Each row's index is the bar's begin time; ``period`` defaults to the
    median spacing of the index.
    """
    df = frame.df
    if period is None:
        period = _infer_period(pd.DatetimeIndex(df.index))
    series = BarSeries(factory, name=frame.symbol)
    for ts, row in zip(df.index, df.itertuples(index=False)):
        series.add_bar_values(
            begin_time=pd.Timestamp(ts).to_pydatetime(),
            period=period,
            open_price=row.Open,
            high_price=row.High,
            low_price=row.Low,
            close_price=row.Close,
            volume=row.Volume,
        )
    return series
