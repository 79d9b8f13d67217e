"""Tests for the candle normalizer

Tests cover:
- Alpha Vantage and plain field spellings
- Ordering and duplicate handling
- Dropping unparseable entries
- Failure on empty or unusable tables
"""

from datetime import date

import pytest

from stockwatch.core.errors import MalformedDataError
from stockwatch.core.models import Candle
from stockwatch.data.normalizer import normalize


def av_row(o, h, l, c, v="1000", volume_key="6. volume"):
    return {
        "1. open": o,
        "2. high": h,
        "3. low": l,
        "4. close": c,
        "5. adjusted close": c,
        volume_key: v,
    }


RAW = {
    "2024-01-04": av_row("102.0", "104.0", "101.0", "103.0", "1300"),
    "2024-01-02": av_row("100.0", "102.0", "99.0", "101.0", "1100"),
    "2024-01-03": av_row("101.0", "103.0", "100.0", "102.0", "1200"),
}


class TestNormalize:
    """Test raw table normalization."""

    def test_sorts_oldest_first(self):
        series = normalize(RAW)
        assert [c.time for c in series] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]

    def test_parses_alpha_vantage_fields(self):
        first = normalize(RAW)[0]
        assert first == Candle(
            time=date(2024, 1, 2), open=100.0, high=102.0, low=99.0, close=101.0, volume=1100.0
        )

    def test_volume_fallback_spelling(self):
        raw = {"2024-01-02": av_row("1", "2", "0.5", "1.5", "77", volume_key="5. volume")}
        assert normalize(raw)[0].volume == 77.0

    def test_missing_volume_reads_zero(self):
        raw = {"2024-01-02": {"open": 1, "high": 2, "low": 0.5, "close": 1.5}}
        assert normalize(raw)[0].volume == 0.0

    def test_nan_volume_reads_zero(self):
        raw = {
            "2024-01-02": {"open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": float("nan")},
            "2024-01-03": {"open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 40},
        }
        series = normalize(raw)
        assert [c.time for c in series] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert series[0].volume == 0.0

    def test_nan_price_drops_entry(self):
        raw = {
            "2024-01-02": {"open": 1, "high": 2, "low": 0.5, "close": float("nan")},
            "2024-01-03": {"open": 1, "high": 2, "low": 0.5, "close": 1.5},
        }
        assert [c.time for c in normalize(raw)] == [date(2024, 1, 3)]

    def test_offset_key_mixed_with_plain_dates(self):
        raw = {
            "2024-01-02": av_row("1", "2", "0.5", "1.5"),
            "2024-01-03T10:00:00+05:00": av_row("1", "2", "0.5", "1.5"),
            "2024-01-04": av_row("1", "2", "0.5", "1.5"),
        }
        series = normalize(raw)
        assert [c.time for c in series] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]

    def test_keys_with_different_offsets_keep_their_own_date(self):
        raw = {
            "2024-01-02T23:30:00-05:00": av_row("1", "2", "0.5", "1.5"),
            "2024-01-03T01:00:00+09:00": av_row("1", "2", "0.5", "1.5"),
        }
        assert [c.time for c in normalize(raw)] == [date(2024, 1, 2), date(2024, 1, 3)]

    def test_plain_field_names(self):
        raw = {"2024-01-02": {"open": 1.0, "high": 2.0, "low": 0.5, "close": 1.5, "volume": 10}}
        series = normalize(raw)
        assert series[0].close == 1.5

    def test_duplicate_dates_keep_last(self):
        raw = [
            ("2024-01-02", av_row("1", "2", "0.5", "1.0")),
            ("2024-01-03", av_row("1", "2", "0.5", "1.2")),
            ("2024-01-02", av_row("1", "2", "0.5", "1.9")),
        ]
        series = normalize(raw)
        assert len(series) == 2
        assert series[0].time == date(2024, 1, 2)
        assert series[0].close == 1.9

    def test_drops_unparseable_entries(self):
        raw = dict(RAW)
        raw["2024-01-05"] = av_row("abc", "104.0", "101.0", "103.0")
        raw["not-a-date"] = av_row("1", "2", "0.5", "1.0")
        raw["2024-01-06"] = {"1. open": "1"}
        raw["2024-01-07"] = av_row("1", "0.5", "2", "1.0")        # low above high
        raw["2024-01-08"] = av_row("5", "4", "3", "3.5")          # open above high
        raw["2024-01-09"] = av_row("1", "2", "0.5", "1.0", "-5")  # negative volume
        raw["2024-01-10"] = "garbage"
        series = normalize(raw)
        assert [c.time for c in series] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]

    def test_idempotent(self):
        assert normalize(RAW) == normalize(RAW)

    def test_sorted_input_only_converts(self):
        raw = {k: RAW[k] for k in sorted(RAW)}
        series = normalize(raw)
        assert [c.time.isoformat() for c in series] == list(raw)
        assert [c.close for c in series] == [float(v["4. close"]) for v in raw.values()]

    def test_series_invariants(self):
        series = normalize(RAW)
        for prev, cur in zip(series, series[1:]):
            assert prev.time < cur.time
        for c in series:
            assert c.low <= min(c.open, c.close) <= max(c.open, c.close) <= c.high

    def test_empty_table_raises(self):
        with pytest.raises(MalformedDataError):
            normalize({})

    def test_all_entries_bad_raises(self):
        with pytest.raises(MalformedDataError):
            normalize({"2024-01-02": av_row("x", "y", "z", "w")})

    def test_missing_fields_everywhere_raises(self):
        with pytest.raises(MalformedDataError):
            normalize({"2024-01-02": {"price": "1"}})

    @pytest.mark.parametrize("raw", [None, "2024-01-02", 42, [("2024-01-02",)]])
    def test_wrong_shape_raises(self, raw):
        with pytest.raises(MalformedDataError):
            normalize(raw)
