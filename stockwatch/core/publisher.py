from __future__ import annotations

import logging
from typing import Callable, Optional

from stockwatch.core.models import Snapshot

# Observer signature: ``(snapshot: Snapshot) -> None``.
SnapshotObserver = Callable[[Snapshot], None]


class SnapshotPublisher:
    """
    Holds the latest published snapshot and notifies observers.

    Observers are called synchronously, in registration order, on the thread
    that publishes (the event-loop thread for the refresh pipeline), so they
    must be non-blocking.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._latest: Optional[Snapshot] = None
        self._observers: list[SnapshotObserver] = []

    @property
    def latest(self) -> Optional[Snapshot]:
        return self._latest

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Register *observer*; returns a callable that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def publish(self, snapshot: Snapshot) -> None:
        self._latest = snapshot
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as exc:
                self.logger.error(
                    f"Snapshot observer {observer!r} failed for {snapshot.symbol}: {exc}",
                    exc_info=True,
                )

    def clear(self) -> None:
        self._latest = None
