from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd

# Positionally aligned with the candle series; None marks warm-up positions.
IndicatorSeries = tuple[Optional[float], ...]


def clean_symbol(symbol: str) -> str:
    """Canonical form of a ticker as typed by a user: trimmed, upper-case."""
    return symbol.strip().upper()


@dataclass(frozen=True)
class Candle:
    time: date       # trading day, unique within a series
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MacdBundle:
    line: IndicatorSeries
    signal: IndicatorSeries
    histogram: IndicatorSeries


@dataclass(frozen=True)
class Snapshot:
    """One published, internally consistent view of a symbol.

    A new snapshot replaces the previous one wholesale; nothing in here is
    ever mutated after construction.
    """
    symbol: str
    series: tuple[Candle, ...]
    sma20: IndicatorSeries
    sma50: IndicatorSeries
    ema20: IndicatorSeries
    rsi14: IndicatorSeries
    macd: MacdBundle
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.series)

    @property
    def latest_close(self) -> Optional[float]:
        if not self.series:
            return None
        return self.series[-1].close

    def to_frame(self) -> pd.DataFrame:
        """Return the series and its indicators as a DataFrame indexed by date.

        Absent indicator values become NaN. The frame is a fresh copy, so
        callers are free to mutate it.
        """
        def _col(values: IndicatorSeries) -> np.ndarray:
            return np.array([np.nan if v is None else v for v in values], dtype=float)

        df = pd.DataFrame({
            "open":        [c.open for c in self.series],
            "high":        [c.high for c in self.series],
            "low":         [c.low for c in self.series],
            "close":       [c.close for c in self.series],
            "volume":      [c.volume for c in self.series],
            "sma20":       _col(self.sma20),
            "sma50":       _col(self.sma50),
            "ema20":       _col(self.ema20),
            "rsi14":       _col(self.rsi14),
            "macd":        _col(self.macd.line),
            "macd_signal": _col(self.macd.signal),
            "macd_hist":   _col(self.macd.histogram),
        }, index=pd.DatetimeIndex([pd.Timestamp(c.time) for c in self.series], name="date"))
        return df


class RefreshState(Enum):
    IDLE      = "idle"
    LOADING   = "loading"
    PUBLISHED = "published"


@dataclass(frozen=True)
class RefreshStatus:
    state:      RefreshState
    symbol:     Optional[str] = None
    message:    str = ""
    error:      Optional[str] = None     # set when the last cycle failed
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None
