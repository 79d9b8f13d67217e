"""
Thin client for the Alpha Vantage daily time-series endpoint.

    GET https://www.alphavantage.co/query
        ?function=TIME_SERIES_DAILY_ADJUSTED&symbol=AAPL
        &outputsize=compact&apikey=...

The free tier allows 5 requests per minute; once exceeded the API answers
HTTP 200 with a ``"Note"`` (or ``"Information"``) body instead of data, which
is surfaced here as a ``DataSourceError``.
"""

import logging
import os
from typing import Any, Optional

import requests

from stockwatch.core.errors import DataSourceError
from stockwatch.data.base import DailySeriesSource

_BASE_URL = "https://www.alphavantage.co"
_QUERY_ENDPOINT = "/query"
_FUNCTION = "TIME_SERIES_DAILY_ADJUSTED"

# The payload key has been seen both with and without a trailing space.
SERIES_KEYS = ("Time Series (Daily)", "Time Series (Daily) ")

API_KEY_ENV = "ALPHA_VANTAGE_API_KEY"

_REQUEST_TIMEOUT = 10


class AlphaVantageDailySource(DailySeriesSource):
    """
    Fetches daily OHLCV tables from Alpha Vantage.

    Parameters
    ----------
    api_key : str, optional
        Falls back to the ``ALPHA_VANTAGE_API_KEY`` environment variable.
    outputsize : str
        ``"compact"`` (latest 100 days) or ``"full"``.
    base_url : str
        Override the default base URL (useful for testing).
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    name = "alpha_vantage"

    def __init__(
        self,
        api_key: Optional[str] = None,
        outputsize: str = "compact",
        base_url: str = _BASE_URL,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = api_key or os.getenv(API_KEY_ENV)
        self.outputsize = outputsize
        self._base_url = base_url.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)

    def fetch_daily_series(self, symbol: str) -> dict[str, dict[str, Any]]:
        """
        Fetch the daily series for a single symbol.

        Parameters
        ----------
        symbol : str
            Equity ticker, e.g. ``"AAPL"`` or ``"TCS.BSE"``.

        Returns
        -------
        dict
            ``{"YYYY-MM-DD": {"1. open": "...", ..., "6. volume": "..."}}``,
            exactly as the provider sent it (values are still strings).
        """
        if not self.api_key:
            raise DataSourceError(
                f"No Alpha Vantage API key configured (set {API_KEY_ENV})", symbol=symbol
            )

        params = {
            "function": _FUNCTION,
            "symbol": symbol,
            "outputsize": self.outputsize,
            "apikey": self.api_key,
        }

        try:
            response = requests.get(
                self._base_url + _QUERY_ENDPOINT,
                params=params,
                timeout=_REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise DataSourceError(f"Request for {symbol} failed: {exc}", symbol=symbol) from exc
        except ValueError as exc:
            raise DataSourceError(f"Invalid JSON for {symbol}: {exc}", symbol=symbol) from exc

        if not isinstance(payload, dict):
            raise DataSourceError(f"Unexpected payload for {symbol}", symbol=symbol)

        if "Error Message" in payload:
            raise DataSourceError(
                f"Alpha Vantage error for {symbol}: {payload['Error Message']}", symbol=symbol
            )
        for key in ("Note", "Information"):
            if key in payload:
                raise DataSourceError(
                    f"Alpha Vantage rate limit for {symbol}: {payload[key]}", symbol=symbol
                )

        for key in SERIES_KEYS:
            data = payload.get(key)
            if data:
                self.logger.debug(f"Fetched {len(data)} daily rows for {symbol}")
                return data

        raise DataSourceError(
            f"No data returned for {symbol}. Check symbol & API key or rate limits.",
            symbol=symbol,
        )
