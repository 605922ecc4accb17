"""Unit tests for kernel time utilities."""

from __future__ import annotations

from datetime import UTC, datetime

from notify_commons.kernel.time import Clock, FrozenClock, SystemClock, from_timestamp


# ---------------------------------------------------------------------------
# SystemClock
# ---------------------------------------------------------------------------


class TestSystemClock:
    def test_now_returns_utc_aware_datetime(self) -> None:
        result = SystemClock().now()
        assert isinstance(result, datetime)
        assert result.utcoffset().total_seconds() == 0  # type: ignore[union-attr]

    def test_timestamp_returns_float(self) -> None:
        ts = SystemClock().timestamp()
        assert isinstance(ts, float)
        assert ts > 0

    def test_satisfies_clock_protocol(self) -> None:
        clk: Clock = SystemClock()
        assert clk.timestamp() > 0


# ---------------------------------------------------------------------------
# FrozenClock
# ---------------------------------------------------------------------------


class TestFrozenClock:
    FIXED = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_stays_frozen(self) -> None:
        clk = FrozenClock(self.FIXED)
        assert clk.now() == clk.now() == self.FIXED
        assert clk.timestamp() == self.FIXED.timestamp()

    def test_advance(self) -> None:
        clk = FrozenClock(self.FIXED)
        clk.advance(seconds=90)
        clk.advance(milliseconds=500)
        assert clk.timestamp() == self.FIXED.timestamp() + 90.5


class TestFromTimestamp:
    def test_round_trip(self) -> None:
        fixed = datetime(2026, 3, 1, 8, 30, 15, tzinfo=UTC)
        assert from_timestamp(fixed.timestamp()) == fixed

    def test_is_utc(self) -> None:
        assert from_timestamp(0).tzinfo == UTC
