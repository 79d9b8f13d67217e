"""
Exceptions raised by the stockwatch core.

Hierarchy::

    StockWatchError (base)
    ├── MalformedDataError     raw payload empty, missing fields or unparseable
    ├── InvalidParameterError  bad period/window/symbol argument (caller bug)
    └── DataSourceError        opaque failure from the price-data provider

The normalizer and the indicator functions raise these and never catch them.
The refresh pipeline is the only place that absorbs them, turning them into
a ``RefreshStatus`` instead of stopping the polling loop.
"""

from __future__ import annotations

from typing import Any, Optional


class StockWatchError(Exception):
    """Base class for every error raised by stockwatch."""

    def __init__(self, message: str, code: str = "STOCKWATCH_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class MalformedDataError(StockWatchError):
    """The raw price table cannot be turned into a candle series."""

    def __init__(self, message: str):
        super().__init__(message, code="MALFORMED_DATA")


class InvalidParameterError(StockWatchError, ValueError):
    """An argument such as an indicator period is out of range."""

    def __init__(self, message: str, name: Optional[str] = None, value: Any = None):
        super().__init__(message, code="INVALID_PARAMETER")
        self.name = name
        self.value = value


class DataSourceError(StockWatchError):
    """The data provider failed (HTTP error, rate limit, unknown symbol...)."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message, code="DATA_SOURCE")
        self.symbol = symbol
