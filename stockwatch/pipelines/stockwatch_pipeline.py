"""
StockWatch — main entry point.

Wires every stage of the live viewer together:

    [1] INIT       — Load config, setup logger, open the watchlist
    [2] SOURCE     — Build the configured daily-series source
    [3] REFRESH    — Poll the active symbol, publish snapshots
    [4] RENDER     — Redraw the chart panes on every publish

Usage::

    python -m stockwatch.pipelines.stockwatch_pipeline [SYMBOL]

Without SYMBOL the first watchlist entry (or ``default_symbol``) is shown.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from stockwatch.core.models import RefreshStatus, clean_symbol
from stockwatch.core.publisher import SnapshotPublisher
from stockwatch.data.alpha_vantage import API_KEY_ENV, AlphaVantageDailySource
from stockwatch.data.base import DailySeriesSource
from stockwatch.data.watchlist import WatchlistStore
from stockwatch.data.yahoo_finance import YahooFinanceDailySource
from stockwatch.pipelines.refresh_pipeline import DEFAULT_INTERVAL_SECS, RefreshPipeline
from stockwatch.render.handle import FrameRenderHandle
from stockwatch.utils.logger import setup_logger

# ---------------------------------------------------------------------------
# Project root (two levels up: stockwatch/pipelines/ → project root)
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT / "config" / "stockwatch.json"


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 1 — INIT
# ═══════════════════════════════════════════════════════════════════════════

def load_config(config_path: Path) -> dict:
    """Read and return the JSON configuration file."""
    with open(config_path, "r") as f:
        return json.load(f)


def resolve_path(path: str | Path) -> Path:
    """Resolve *path* against the project root unless it is absolute."""
    path = Path(path)
    return path if path.is_absolute() else ROOT / path


def init(config_path: Optional[Path] = None) -> tuple[dict, logging.Logger]:
    """
    Stage 1: load configuration and setup the logger.

    Returns
    -------
    config : dict
        Parsed contents of ``stockwatch.json``.
    logger : logging.Logger
        Configured rotating logger.
    """
    config_path = config_path or DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    data_paths = config.get("data_paths", {})
    log_path = resolve_path(data_paths.get("log_path", "logs")) / "stockwatch.log"
    log_level = getattr(
        logging, config.get("log_level", "INFO").upper(), logging.INFO
    )
    logger = setup_logger("stockwatch", log_path, level=log_level)

    logger.info("=" * 60)
    logger.info("StockWatch starting")
    logger.info("=" * 60)
    logger.info("Stage 1 — INIT")
    logger.info(f"Config loaded from: {config_path}")
    return config, logger


def pick_symbol(config: dict, watchlist: list[str], argv: list[str]) -> str:
    """Command-line symbol, else first watchlist entry, else ``default_symbol``."""
    if argv and clean_symbol(argv[0]):
        return clean_symbol(argv[0])
    if watchlist:
        return watchlist[0]
    return clean_symbol(config.get("default_symbol", "AAPL"))


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 2 — SOURCE
# ═══════════════════════════════════════════════════════════════════════════

def build_source(config: dict, logger: logging.Logger) -> DailySeriesSource:
    """Stage 2: instantiate the configured data source."""
    logger.info("Stage 2 — SOURCE")
    name = config.get("data_source", "alpha_vantage")

    if name == "alpha_vantage":
        av = config.get("alpha_vantage", {})
        source = AlphaVantageDailySource(
            api_key=os.getenv(API_KEY_ENV) or av.get("api_key") or None,
            outputsize=av.get("outputsize", "compact"),
            logger=logger,
        )
        if not source.api_key:
            logger.warning(
                f"No Alpha Vantage API key configured; set {API_KEY_ENV} or "
                f"alpha_vantage.api_key. Every refresh will fail until then."
            )
    elif name == "yahoo_finance":
        yf_cfg = config.get("yahoo_finance", {})
        source = YahooFinanceDailySource(period=yf_cfg.get("period", "6mo"), logger=logger)
    else:
        raise ValueError(f"Unknown data_source {name!r}")

    logger.info(f"Data source: {source.name}")
    return source


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 3 & 4 — REFRESH + RENDER
# ═══════════════════════════════════════════════════════════════════════════

async def heartbeat(pipeline: RefreshPipeline, logger: logging.Logger, interval_sec: int = 600):
    """Periodic heartbeat so we know the viewer is alive."""
    while True:
        await asyncio.sleep(interval_sec)
        status = pipeline.status
        logger.info(
            f"Heartbeat: {status.symbol or '-'} {status.state.value} — {status.message}"
        )


async def run(
    config: dict,
    source: DailySeriesSource,
    symbol: str,
    logger: logging.Logger,
) -> None:
    """Stages 3 & 4: poll *symbol* and redraw until cancelled."""
    logger.info("Stage 3 — REFRESH")
    refresh_cfg = config.get("refresh", {})

    def on_status(status: RefreshStatus) -> None:
        if status.error:
            logger.warning(f"Status: {status.message} — {status.error}")

    publisher = SnapshotPublisher(logger=logger)
    pipeline = RefreshPipeline(
        source,
        publisher,
        interval_secs=refresh_cfg.get("interval_secs", DEFAULT_INTERVAL_SECS),
        auto_refresh=refresh_cfg.get("auto_refresh", True),
        on_status=on_status,
        logger=logger,
    )

    logger.info("Stage 4 — RENDER")
    with FrameRenderHandle(logger=logger) as handle:
        handle.attach(publisher)
        async with pipeline:
            pipeline.set_active_symbol(symbol)
            await heartbeat(pipeline, logger)


# ═══════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

def main(argv: Optional[list[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    config, logger = init()

    store = WatchlistStore(
        resolve_path(config.get("data_paths", {}).get("watchlist_path", "data/watchlist.json")),
        logger=logger,
    )
    watchlist = store.load()
    logger.info(f"Watchlist: {', '.join(watchlist) or '(empty)'}")
    logger.info(f"Sample symbols: {', '.join(config.get('sample_symbols', []))}")

    symbol = pick_symbol(config, watchlist, argv)
    source = build_source(config, logger)

    try:
        asyncio.run(run(config, source, symbol, logger))
    except KeyboardInterrupt:
        logger.info("StockWatch stopped by user.")


if __name__ == "__main__":
    main()
