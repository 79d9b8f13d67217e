"""
Raw price table → ordered candle series.

Providers hand back a table keyed by date string, e.g. Alpha Vantage::

    {
      "2024-01-03": {"1. open": "184.22", "2. high": "185.88",
                     "3. low": "183.43", "4. close": "184.25",
                     "6. volume": "58414460", ...},
      ...
    }

``normalize`` parses every entry, drops the ones that cannot be parsed,
collapses duplicate dates (last one wins) and sorts oldest first. It is a
pure function of its input.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

import numpy as np
import pandas as pd

from stockwatch.core.errors import MalformedDataError
from stockwatch.core.models import Candle

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Accepted field spellings, in lookup order
# ---------------------------------------------------------------------------
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "open":   ("1. open", "open"),
    "high":   ("2. high", "high"),
    "low":    ("3. low", "low"),
    "close":  ("4. close", "close"),
    # TIME_SERIES_DAILY_ADJUSTED reports volume as field 6, TIME_SERIES_DAILY as 5.
    "volume": ("6. volume", "5. volume", "volume"),
}

PRICE_COLUMNS = ["open", "high", "low", "close"]
NUMERIC_COLUMNS = PRICE_COLUMNS + ["volume"]

_MISSING = object()


def _is_blank(value: Any) -> bool:
    if value is None or (isinstance(value, str) and not value.strip()):
        return True
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def _lookup(record: Mapping, field: str) -> Any:
    for key in FIELD_KEYS[field]:
        value = record.get(key)
        if not _is_blank(value):
            return value
    return _MISSING


def _parse_time(key: str) -> pd.Timestamp:
    """Parse a date key, keeping the wall-clock date of any UTC offset."""
    ts = pd.to_datetime(key, errors="coerce", format="ISO8601")
    if ts is pd.NaT:
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def _iter_entries(raw_table: Any) -> list[tuple[Any, Any]]:
    """Return ``(date_key, record)`` pairs from a mapping or an iterable of pairs."""
    if raw_table is None or isinstance(raw_table, (str, bytes)):
        raise MalformedDataError("raw table must be a mapping of date -> record")

    if isinstance(raw_table, Mapping):
        return list(raw_table.items())

    if not isinstance(raw_table, Iterable):
        raise MalformedDataError(
            f"raw table must be a mapping of date -> record, got {type(raw_table).__name__}"
        )

    entries = []
    for item in raw_table:
        if not isinstance(item, (tuple, list)) or len(item) != 2:
            raise MalformedDataError(f"expected (date, record) pairs, got {item!r}")
        entries.append((item[0], item[1]))
    return entries


def _to_row(key: Any, record: Any) -> Optional[dict]:
    if not isinstance(record, Mapping):
        return None
    row = {"key": str(key)}
    for field in NUMERIC_COLUMNS:
        value = _lookup(record, field)
        if value is _MISSING:
            if field == "volume":
                value = 0
            else:
                return None
        row[field] = value
    return row


def normalize(raw_table: Any) -> tuple[Candle, ...]:
    """Turn a raw provider table into a validated, chronologically ordered series.

    Args:
        raw_table: Mapping of date string -> OHLCV record, or an iterable of
            ``(date string, record)`` pairs

    Returns:
        Tuple of Candle, oldest first, one candle per calendar date

    Raises:
        MalformedDataError: If the table is empty, has the wrong shape, or no
            entry survives parsing
    """
    entries = _iter_entries(raw_table)
    if not entries:
        raise MalformedDataError("raw table is empty")

    rows = []
    for key, record in entries:
        row = _to_row(key, record)
        if row is None:
            logger.debug(f"Dropping entry {key!r}: missing price fields")
            continue
        rows.append(row)

    if not rows:
        raise MalformedDataError(
            f"none of the {len(entries)} entries carry open/high/low/close fields"
        )

    df = pd.DataFrame(rows, columns=["key"] + NUMERIC_COLUMNS)
    df["time"] = pd.to_datetime(df["key"].map(_parse_time))
    df[NUMERIC_COLUMNS] = df[NUMERIC_COLUMNS].apply(pd.to_numeric, errors="coerce")

    values = df[NUMERIC_COLUMNS].to_numpy(dtype=float)
    valid = (
        df["time"].notna().to_numpy()
        & np.isfinite(values).all(axis=1)
        & (values >= 0).all(axis=1)
        & (df["low"] <= df["high"]).to_numpy()
        & df["open"].between(df["low"], df["high"]).to_numpy()
        & df["close"].between(df["low"], df["high"]).to_numpy()
    )

    dropped = int((~valid).sum())
    if dropped:
        logger.debug(
            f"Dropping {dropped} unparseable entries: "
            f"{df.loc[~valid, 'key'].tolist()[:10]}"
        )

    df = df[valid]
    if df.empty:
        raise MalformedDataError(f"none of the {len(entries)} entries could be parsed")

    # Collapse to calendar dates, keeping the latest occurrence of each day.
    df = df.assign(time=df["time"].dt.normalize())
    df = df.drop_duplicates(subset=["time"], keep="last")
    df = df.sort_values("time", kind="stable")

    return tuple(
        Candle(
            time=row.time.date(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    )
