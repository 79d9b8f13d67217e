from abc import ABC, abstractmethod
from typing import Any, Mapping


class DailySeriesSource(ABC):
    """Provider of raw daily OHLCV tables, keyed by date string.

    Implementations raise ``DataSourceError`` for anything that goes wrong on
    the provider side. They may be plain or ``async`` methods; the refresh
    pipeline handles both.
    """

    name: str = "source"

    @abstractmethod
    def fetch_daily_series(self, symbol: str) -> Mapping[str, Mapping[str, Any]]:
        pass
