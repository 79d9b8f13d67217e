"""
Refresh pipeline: keeps one active symbol's snapshot up to date.

State machine::

    IDLE ──set_active_symbol──▶ LOADING ──success──▶ PUBLISHED
      ▲                          ▲   │                  │
      │                          │   └─failure─┐        │ timer fires
      └──────── stop() ──────────┴─────────────┴────────┘ (auto-refresh)

Each cycle fetches the raw table, normalizes it, computes every indicator
from that same series and publishes one immutable ``Snapshot``. The fetch is
the only await point of a cycle.

Guarantees:

* At most one fetch in flight and at most one pending timer handle.
* ``set_active_symbol`` cancels both before starting the new symbol; a fetch
  that still completes for the old symbol is dropped, never published.
* A failed cycle keeps the previously published snapshot, records the error
  in ``status`` and, with auto-refresh on, arms the next attempt after the
  same fixed interval.

Usage::

    publisher = SnapshotPublisher()
    async with RefreshPipeline(source, publisher, interval_secs=5) as pipeline:
        pipeline.set_active_symbol("AAPL")
        ...
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from stockwatch.core.errors import DataSourceError, InvalidParameterError, MalformedDataError
from stockwatch.core.indicators import build_snapshot
from stockwatch.core.models import RefreshState, RefreshStatus, Snapshot, clean_symbol
from stockwatch.core.publisher import SnapshotPublisher
from stockwatch.data.base import DailySeriesSource
from stockwatch.data.normalizer import normalize

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_INTERVAL_SECS = 5.0

StatusCallback = Callable[[RefreshStatus], None]


class RefreshPipeline:
    """
    Polls a data source for the active symbol and publishes snapshots.

    Parameters
    ----------
    source : DailySeriesSource
        Anything with ``fetch_daily_series(symbol)``. Blocking sources run in
        a worker thread; ``async`` sources are awaited directly.
    publisher : SnapshotPublisher
        Receives every successful snapshot.
    interval_secs : float
        Delay between the end of one cycle and the start of the next.
    auto_refresh : bool
        When False a cycle runs only on ``set_active_symbol``.
    on_status : StatusCallback, optional
        Called on the event-loop thread on every status change.
    logger : logging.Logger, optional
        Falls back to a module-level logger.

    All methods must be called from the thread running the event loop.
    """

    def __init__(
        self,
        source: DailySeriesSource,
        publisher: SnapshotPublisher,
        interval_secs: float = DEFAULT_INTERVAL_SECS,
        auto_refresh: bool = True,
        on_status: Optional[StatusCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval_secs <= 0:
            raise InvalidParameterError(
                f"interval_secs must be positive, got {interval_secs!r}",
                name="interval_secs",
                value=interval_secs,
            )
        self.source = source
        self.publisher = publisher
        self.interval_secs = float(interval_secs)
        self.on_status = on_status
        self.logger = logger or logging.getLogger(__name__)

        self._auto_refresh = auto_refresh
        self._active_symbol: Optional[str] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._retired: set[asyncio.Task] = set()
        self._status = RefreshStatus(state=RefreshState.IDLE)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def active_symbol(self) -> Optional[str]:
        return self._active_symbol

    @property
    def status(self) -> RefreshStatus:
        return self._status

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def set_active_symbol(self, symbol: str) -> None:
        """Switch to *symbol* and start a cycle for it right away."""
        symbol = clean_symbol(symbol)
        if not symbol:
            raise InvalidParameterError("symbol must not be blank", name="symbol", value=symbol)

        previous = self._active_symbol
        self._cancel_timer()
        self._cancel_task()
        self._active_symbol = symbol
        self._generation += 1
        if previous and previous != symbol:
            self.logger.info(f"Active symbol {previous} -> {symbol}")
        else:
            self.logger.info(f"Active symbol {symbol}")
        self._start_cycle()

    def set_auto_refresh(self, enabled: bool) -> None:
        """Turn polling on or off.

        Turning it on with an idle active symbol runs a cycle immediately;
        turning it off only disarms the timer and lets an in-flight cycle
        finish.
        """
        self._auto_refresh = enabled
        if not enabled:
            self._cancel_timer()
            return
        if self._active_symbol is not None and not self.in_flight:
            self._cancel_timer()
            self._start_cycle()

    def stop(self) -> None:
        """Cancel everything and forget the active symbol."""
        self._cancel_timer()
        self._cancel_task()
        symbol = self._active_symbol
        self._active_symbol = None
        self._generation += 1
        self._set_status(RefreshState.IDLE, symbol=None, message="Stopped")
        if symbol:
            self.logger.info(f"Refresh stopped for {symbol}")

    async def join(self) -> None:
        """Wait until no cycle is in flight."""
        while self.in_flight:
            await asyncio.gather(self._task, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop and wait for cancelled cycles to unwind."""
        self.stop()
        if self._retired:
            await asyncio.gather(*self._retired, return_exceptions=True)

    async def __aenter__(self) -> "RefreshPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_current(self, symbol: str, generation: int) -> bool:
        return symbol == self._active_symbol and generation == self._generation

    def _set_status(
        self,
        state: RefreshState,
        symbol: Optional[str],
        message: str,
        error: Optional[str] = None,
    ) -> None:
        self._status = RefreshStatus(state=state, symbol=symbol, message=message, error=error)
        if self.on_status is None:
            return
        try:
            self.on_status(self._status)
        except Exception as exc:
            self.logger.error(f"Status callback failed: {exc}", exc_info=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_task(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        self._retired.add(task)
        task.add_done_callback(self._retired.discard)

    def _arm_timer(self) -> None:
        self._cancel_timer()
        if not self._auto_refresh or self._active_symbol is None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.interval_secs, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._start_cycle()

    def _start_cycle(self) -> None:
        symbol = self._active_symbol
        if symbol is None:
            return
        if self.in_flight:
            self.logger.debug(f"[{symbol}] Cycle already in flight; not starting another.")
            return

        generation = self._generation
        self._set_status(RefreshState.LOADING, symbol=symbol, message=f"Loading {symbol} ...")
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._run_cycle(symbol, generation), name=f"refresh-{symbol}-{generation}"
        )

    async def _fetch(self, symbol: str) -> Any:
        fetch = self.source.fetch_daily_series
        if inspect.iscoroutinefunction(fetch):
            return await fetch(symbol)
        return await asyncio.to_thread(fetch, symbol)

    async def _run_cycle(self, symbol: str, generation: int) -> None:
        try:
            raw = await self._fetch(symbol)
            series = normalize(raw)
            snapshot = build_snapshot(symbol, series)
        except asyncio.CancelledError:
            self.logger.debug(f"[{symbol}] Cycle cancelled.")
            raise
        except (DataSourceError, MalformedDataError) as exc:
            if self._is_current(symbol, generation):
                self.logger.warning(f"[{symbol}] Refresh failed: {exc}")
                self._record_failure(symbol, exc)
        except Exception as exc:
            if self._is_current(symbol, generation):
                self.logger.exception(f"[{symbol}] Unexpected refresh error: {exc}")
                self._record_failure(symbol, exc)
        else:
            if not self._is_current(symbol, generation):
                self.logger.debug(f"[{symbol}] Dropping result for inactive symbol.")
                return
            self._publish(snapshot)

        if self._is_current(symbol, generation):
            self._arm_timer()

    def _publish(self, snapshot: Snapshot) -> None:
        self.publisher.publish(snapshot)
        message = f"Loaded {snapshot.symbol} ({len(snapshot)} days)"
        self.logger.info(message)
        self._set_status(RefreshState.PUBLISHED, symbol=snapshot.symbol, message=message)

    def _record_failure(self, symbol: str, exc: Exception) -> None:
        # The previous snapshot stays published; only the status changes.
        latest = self.publisher.latest
        if latest is not None and latest.symbol == symbol:
            state = RefreshState.PUBLISHED
        else:
            state = RefreshState.IDLE
        self._set_status(
            state,
            symbol=symbol,
            message=f"Error loading {symbol}",
            error=str(exc),
        )
