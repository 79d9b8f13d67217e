"""
Watchlist persistence.

The watchlist is an ordered list of symbols kept in a small JSON file so it
survives restarts. The refresh pipeline never touches it; the application
reads it to decide which symbol to make active.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from stockwatch.core.models import clean_symbol

DEFAULT_WATCHLIST = ["AAPL", "TCS.BSE"]


class WatchlistStore:
    """
    Persists the watchlist to a JSON file.

    File layout (``data/watchlist.json``)::

        ["AAPL", "TCS.BSE", "MSFT"]
    """

    def __init__(
        self,
        path: Path,
        defaults: Optional[list[str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.defaults = list(DEFAULT_WATCHLIST if defaults is None else defaults)
        self.logger = logger or logging.getLogger(__name__)

    def load(self) -> list[str]:
        """Read the watchlist from disk. Returns the defaults if the file is missing or corrupt."""
        if not self.path.exists():
            return list(self.defaults)
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            self.logger.warning(f"Unreadable watchlist at {self.path} ({exc}); using defaults.")
            return list(self.defaults)

        if not isinstance(raw, list) or not all(isinstance(s, str) for s in raw):
            self.logger.warning(f"Watchlist at {self.path} is not a list of symbols; using defaults.")
            return list(self.defaults)
        return raw

    def save(self, symbols: list[str]) -> None:
        """Atomically write the watchlist to disk."""
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(list(symbols), f, indent=2)
        tmp.replace(self.path)

    def add(self, symbol: str) -> list[str]:
        """Append *symbol* unless it is blank or already listed."""
        symbol = clean_symbol(symbol)
        symbols = self.load()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
            self.save(symbols)
        return symbols

    def remove(self, symbol: str) -> list[str]:
        symbol = clean_symbol(symbol)
        symbols = [s for s in self.load() if s != symbol]
        self.save(symbols)
        return symbols
