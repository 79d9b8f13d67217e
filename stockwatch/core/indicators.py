"""Technical Indicator Functions

This module contains the indicator math behind every published snapshot:
SMA, EMA, RSI and MACD over a sequence of closing prices.

Every function returns a list with exactly one entry per input value.
Positions without enough history hold ``None`` so the result can be zipped
against the candle series it was computed from.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from stockwatch.core.errors import InvalidParameterError
from stockwatch.core.models import Candle, MacdBundle, Snapshot

# Periods used for every published snapshot.
SMA_FAST_PERIOD = 20
SMA_SLOW_PERIOD = 50
EMA_PERIOD = 20
RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9


def _check_period(name: str, period: int) -> None:
    if isinstance(period, bool) or not isinstance(period, int) or period < 1:
        raise InvalidParameterError(
            f"{name} must be a positive integer, got {period!r}", name=name, value=period
        )


def sma(values: Sequence[float], period: int) -> list[Optional[float]]:
    """Calculate the simple moving average.

    Args:
        values: Prices, oldest first
        period: Window length

    Returns:
        List aligned with *values*; the first ``period - 1`` entries are None

    Raises:
        InvalidParameterError: If period is below 1
    """
    _check_period("period", period)
    values = [float(v) for v in values]

    out: list[Optional[float]] = []
    for i in range(len(values)):
        if i < period - 1:
            out.append(None)
            continue
        total = 0.0
        for j in range(i - period + 1, i + 1):
            total += values[j]
        out.append(total / period)
    return out


def ema(values: Sequence[float], period: int) -> list[Optional[float]]:
    """Calculate the exponential moving average.

    The recurrence is seeded with the first value and runs over the whole
    input. The first ``period - 1`` results are still reported as None, but
    they feed the later values.

    Args:
        values: Prices, oldest first
        period: Smoothing period, ``k = 2 / (period + 1)``

    Returns:
        List aligned with *values*

    Raises:
        InvalidParameterError: If period is below 1 or values is empty
    """
    _check_period("period", period)
    values = [float(v) for v in values]
    if not values:
        raise InvalidParameterError("ema needs at least one value", name="values", value=values)

    k = 2 / (period + 1)
    prev = values[0]
    computed = [prev]
    for value in values[1:]:
        prev = value * k + prev * (1 - k)
        computed.append(prev)

    return [None if i < period - 1 else v for i, v in enumerate(computed)]


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def rsi(values: Sequence[float], period: int = RSI_PERIOD) -> list[Optional[float]]:
    """Calculate the relative strength index with Wilder smoothing.

    The first reading appears at index ``period`` and uses plain averages of
    the gains and losses seen so far. Later readings smooth the running
    totals as ``total = (total * (period - 1) + current) / period``, starting
    from the raw sums of the first window, not their averages. A window
    without losses reads 100.

    Args:
        values: Prices, oldest first
        period: Lookback (default 14)

    Returns:
        List aligned with *values*, every present value within [0, 100]

    Raises:
        InvalidParameterError: If period is below 1
    """
    _check_period("period", period)
    values = [float(v) for v in values]
    if not values:
        return []

    out: list[Optional[float]] = [None]
    gains = 0.0
    losses = 0.0
    for i in range(1, len(values)):
        diff = values[i] - values[i - 1]
        if i <= period:
            if diff > 0:
                gains += diff
            else:
                losses += abs(diff)
            if i == period:
                out.append(_rsi_value(gains / period, losses / period))
            else:
                out.append(None)
        else:
            gain = diff if diff > 0 else 0.0
            loss = -diff if diff < 0 else 0.0
            gains = (gains * (period - 1) + gain) / period
            losses = (losses * (period - 1) + loss) / period
            out.append(_rsi_value(gains, losses))
    return out


def macd(
    values: Sequence[float],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> MacdBundle:
    """Calculate MACD line, signal line and histogram.

    Note: the signal EMA is run over the MACD line with its warm-up gaps
    filled by 0, so early signal and histogram values are biased towards
    zero.

    Args:
        values: Prices, oldest first
        fast: Fast EMA period (default 12)
        slow: Slow EMA period (default 26)
        signal: Signal EMA period (default 9)

    Returns:
        MacdBundle whose three series are aligned with *values*

    Raises:
        InvalidParameterError: If any period is below 1
    """
    _check_period("fast", fast)
    _check_period("slow", slow)
    _check_period("signal", signal)
    values = [float(v) for v in values]
    if not values:
        return MacdBundle(line=(), signal=(), histogram=())

    ema_fast = ema(values, fast)
    ema_slow = ema(values, slow)
    line = [
        None if f is None or s is None else f - s
        for f, s in zip(ema_fast, ema_slow)
    ]
    signal_line = ema([0.0 if v is None else v for v in line], signal)
    hist = [
        None if v is None or s is None else v - s
        for v, s in zip(line, signal_line)
    ]
    return MacdBundle(line=tuple(line), signal=tuple(signal_line), histogram=tuple(hist))


def build_snapshot(
    symbol: str,
    series: Sequence[Candle],
    fetched_at: Optional[datetime] = None,
) -> Snapshot:
    """Compute every overlay for *series* and bundle them into a Snapshot.

    All indicators are derived from this one series, never from a previous
    fetch.
    """
    series = tuple(series)
    closes = [c.close for c in series]

    if closes:
        ema20 = tuple(ema(closes, EMA_PERIOD))
    else:
        ema20 = ()

    kwargs = {}
    if fetched_at is not None:
        kwargs["fetched_at"] = fetched_at

    return Snapshot(
        symbol=symbol,
        series=series,
        sma20=tuple(sma(closes, SMA_FAST_PERIOD)),
        sma50=tuple(sma(closes, SMA_SLOW_PERIOD)),
        ema20=ema20,
        rsi14=tuple(rsi(closes, RSI_PERIOD)),
        macd=macd(closes, MACD_FAST, MACD_SLOW, MACD_SIGNAL),
        **kwargs,
    )
