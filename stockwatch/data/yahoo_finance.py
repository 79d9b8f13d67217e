import logging
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from stockwatch.core.errors import DataSourceError
from stockwatch.data.base import DailySeriesSource


def download_ticker_data(
    ticker: str,
    period: str = "6mo",
    interval: str = "1d"
) -> pd.DataFrame:
    """
    Download recent price data for a ticker from Yahoo Finance.

    Args:
        ticker: Stock ticker symbol (e.g., 'AAPL', 'MSFT')
        period: Lookback period understood by yfinance ('1mo', '6mo', '1y', ...)
        interval: Data interval ('1d', '1wk', '1mo', etc.)

    Returns:
        DataFrame with Open/High/Low/Close/Volume columns indexed by date

    Raises:
        DataSourceError: If the download fails or returns no rows
    """
    try:
        data = yf.download(
            ticker,
            period=period,
            interval=interval,
            progress=False,
            auto_adjust=True
        )
    except Exception as e:
        raise DataSourceError(f"Error downloading data for {ticker}: {e}", symbol=ticker) from e

    if data is None or data.empty:
        raise DataSourceError(f"No data found for {ticker}", symbol=ticker)

    # Flatten multi-level columns to remove ticker from column names
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    return data


def frame_to_raw_table(df: pd.DataFrame) -> dict[str, dict[str, Any]]:
    """Convert a yfinance frame into the date-keyed table the normalizer reads."""
    table = {}
    for ts, row in df.iterrows():
        table[pd.Timestamp(ts).strftime("%Y-%m-%d")] = {
            "open": row.get("Open"),
            "high": row.get("High"),
            "low": row.get("Low"),
            "close": row.get("Close"),
            "volume": row.get("Volume", 0),
        }
    return table


class YahooFinanceDailySource(DailySeriesSource):
    """Daily series from Yahoo Finance; no API key required."""

    name = "yahoo_finance"

    def __init__(self, period: str = "6mo", logger: Optional[logging.Logger] = None) -> None:
        self.period = period
        self.logger = logger or logging.getLogger(__name__)

    def fetch_daily_series(self, symbol: str) -> dict[str, dict[str, Any]]:
        df = download_ticker_data(symbol, period=self.period, interval="1d")
        self.logger.debug(f"Fetched {len(df)} daily rows for {symbol}")
        return frame_to_raw_table(df)
