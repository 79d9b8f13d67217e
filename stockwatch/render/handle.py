"""
Render handles: the receiving end of published snapshots.

A handle is created once, attached to a ``SnapshotPublisher`` and closed when
the view goes away. Each ``update`` replaces everything the handle displays;
nothing is patched incrementally.

Usage::

    with FrameRenderHandle(logger=logger) as handle:
        handle.attach(publisher)
        ...                     # panes refresh on every publish
    # detached and released here
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Optional

import pandas as pd

from stockwatch.core.models import Snapshot
from stockwatch.core.publisher import SnapshotPublisher

# Pane name -> snapshot frame columns drawn in it.
PANE_COLUMNS: dict[str, list[str]] = {
    "price":    ["open", "high", "low", "close"],
    "volume":   ["volume"],
    "overlays": ["sma20", "sma50", "ema20"],
    "rsi":      ["rsi14"],
    "macd":     ["macd", "macd_signal", "macd_hist"],
}


class RenderHandle(ABC):
    """Owned rendering resource with an explicit lifecycle."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._detach: Optional[Callable[[], None]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, publisher: SnapshotPublisher) -> None:
        """Subscribe to *publisher* and draw its latest snapshot, if any."""
        if self._closed:
            raise RuntimeError("render handle is closed")
        if self._detach is not None:
            self._detach()
        self._detach = publisher.subscribe(self.update)
        if publisher.latest is not None:
            self.update(publisher.latest)

    def update(self, snapshot: Snapshot) -> None:
        if self._closed:
            raise RuntimeError("render handle is closed")
        self._draw(snapshot)

    def close(self) -> None:
        if self._closed:
            return
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._release()
        self._closed = True

    def __enter__(self) -> "RenderHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @abstractmethod
    def _draw(self, snapshot: Snapshot) -> None:
        pass

    def _release(self) -> None:
        pass


def _fmt(value: Optional[float]) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "—"
    return f"{value:.2f}"


class FrameRenderHandle(RenderHandle):
    """
    Keeps one DataFrame per chart pane, rebuilt from scratch on every update.

    Parameters
    ----------
    log_updates : bool
        Log a one-line summary (latest close, overlays, RSI) per update.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(self, log_updates: bool = True, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger=logger)
        self.log_updates = log_updates
        self.symbol: Optional[str] = None
        self.panes: dict[str, pd.DataFrame] = {}
        self.update_count = 0

    def _draw(self, snapshot: Snapshot) -> None:
        frame = snapshot.to_frame()
        self.panes = {pane: frame[cols].copy() for pane, cols in PANE_COLUMNS.items()}
        self.symbol = snapshot.symbol
        self.update_count += 1

        if self.log_updates:
            last = frame.iloc[-1] if not frame.empty else None
            self.logger.info(
                f"{snapshot.symbol} | Latest: {_fmt(snapshot.latest_close)} | "
                f"SMA20 {_fmt(None if last is None else last['sma20'])} | "
                f"SMA50 {_fmt(None if last is None else last['sma50'])} | "
                f"EMA20 {_fmt(None if last is None else last['ema20'])} | "
                f"RSI14 {_fmt(None if last is None else last['rsi14'])} | "
                f"Data points: {len(snapshot)}"
            )

    def _release(self) -> None:
        self.panes = {}
        self.symbol = None
