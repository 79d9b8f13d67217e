from datetime import date, timedelta

import pytest

from stockwatch.core.indicators import build_snapshot
from stockwatch.core.models import Candle
from stockwatch.core.publisher import SnapshotPublisher
from stockwatch.render.handle import PANE_COLUMNS, FrameRenderHandle


def snapshot(symbol, n):
    start = date(2024, 1, 1)
    candles = [
        Candle(time=start + timedelta(days=i), open=10 + i, high=11 + i, low=9 + i, close=10 + i, volume=100.0)
        for i in range(n)
    ]
    return build_snapshot(symbol, candles)


class TestFrameRenderHandle:
    """Test pane replacement and lifecycle."""

    def test_update_builds_every_pane(self):
        handle = FrameRenderHandle(log_updates=False)
        handle.update(snapshot("AAPL", 30))

        assert set(handle.panes) == set(PANE_COLUMNS)
        for pane, cols in PANE_COLUMNS.items():
            assert list(handle.panes[pane].columns) == cols
            assert len(handle.panes[pane]) == 30
        assert handle.symbol == "AAPL"

    def test_update_replaces_instead_of_appending(self):
        handle = FrameRenderHandle(log_updates=False)
        handle.update(snapshot("AAPL", 30))
        handle.update(snapshot("MSFT", 5))

        assert handle.symbol == "MSFT"
        assert all(len(df) == 5 for df in handle.panes.values())
        assert handle.update_count == 2

    def test_attach_draws_latest_and_follows_publisher(self):
        publisher = SnapshotPublisher()
        publisher.publish(snapshot("AAPL", 3))

        handle = FrameRenderHandle(log_updates=False)
        handle.attach(publisher)
        assert handle.symbol == "AAPL"

        publisher.publish(snapshot("MSFT", 4))
        assert handle.symbol == "MSFT"

    def test_context_manager_detaches_and_releases(self):
        publisher = SnapshotPublisher()
        with FrameRenderHandle(log_updates=False) as handle:
            handle.attach(publisher)
            publisher.publish(snapshot("AAPL", 3))
            assert handle.update_count == 1

        assert handle.closed
        assert handle.panes == {}
        publisher.publish(snapshot("MSFT", 3))
        assert handle.update_count == 1

    def test_update_after_close_raises(self):
        handle = FrameRenderHandle(log_updates=False)
        handle.close()
        handle.close()
        with pytest.raises(RuntimeError):
            handle.update(snapshot("AAPL", 1))

    def test_logs_summary(self, caplog):
        handle = FrameRenderHandle()
        with caplog.at_level("INFO"):
            handle.update(snapshot("AAPL", 25))
        assert "AAPL | Latest: 34.00" in caplog.text
        assert "Data points: 25" in caplog.text

    def test_empty_snapshot(self):
        handle = FrameRenderHandle()
        handle.update(snapshot("AAPL", 0))
        assert all(df.empty for df in handle.panes.values())
