"""
Tests for StatsAccumulator.
"""

import statistics

import pytest

from market_stream.core.models import EventType, TradeEvent
from market_stream.stream import StatsAccumulator, StatsSnapshot
from market_stream.stream.stats import UNRECOGNIZED_TAG


@pytest.fixture
def trade(trade_payload) -> TradeEvent:
    return TradeEvent.from_binance(trade_payload)


class TestStatsAccumulator:
    """Counting and timing."""

    def test_initial_snapshot(self):
        stats = StatsAccumulator(start_time=10.0)
        snapshot = stats.snapshot()
        assert snapshot.total_messages == 0
        assert snapshot.mean_interarrival is None
        assert snapshot.window_start == 10.0

    def test_each_record_increments_total(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        for i in range(1, 6):
            stats.record(trade, arrival_time=float(i))
            assert stats.snapshot().total_messages == i

    def test_per_type_counts_sum_to_total(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        stats.record(trade, 1.0)
        stats.record(EventType.KLINE, 2.0)
        stats.record(trade, 3.0)
        stats.record(UNRECOGNIZED_TAG, 4.0)

        snapshot = stats.snapshot()
        assert snapshot.count(EventType.TRADE) == 2
        assert snapshot.count("kline") == 1
        assert snapshot.count(UNRECOGNIZED_TAG) == 1
        assert snapshot.count(EventType.TICKER) == 0
        assert sum(snapshot.per_type.values()) == snapshot.total_messages

    def test_interarrival_matches_batch_statistics(self, trade):
        arrivals = [0.0, 0.5, 0.75, 1.75, 1.80, 3.0]
        gaps = [b - a for a, b in zip(arrivals, arrivals[1:])]

        stats = StatsAccumulator(start_time=0.0)
        for t in arrivals:
            stats.record(trade, t)

        snapshot = stats.snapshot()
        assert snapshot.mean_interarrival == pytest.approx(statistics.mean(gaps))
        assert snapshot.stddev_interarrival == pytest.approx(statistics.stdev(gaps))
        assert snapshot.last_interarrival == pytest.approx(1.2)

    def test_single_message_has_no_gap(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        stats.record(trade, 1.0)
        assert stats.snapshot().last_interarrival is None

    def test_frequency(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        for t in (1.0, 2.0, 3.0, 4.0):
            stats.record(trade, t)
        assert stats.snapshot().frequency(now=2.0) == 2.0
        assert StatsSnapshot().frequency(now=0.0) == 0.0

    def test_snapshots_are_swapped_not_mutated(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        stats.record(trade, 1.0)
        first = stats.snapshot()
        stats.record(trade, 2.0)

        assert first.total_messages == 1
        assert stats.snapshot() is not first
        with pytest.raises(TypeError):
            first.per_type["trade"] = 10

    def test_uses_clock_when_no_arrival_time(self, trade):
        now = iter([5.0, 6.0, 8.0])
        stats = StatsAccumulator(clock=lambda: next(now))
        stats.record(trade)
        stats.record(trade)
        assert stats.snapshot().window_start == 5.0
        assert stats.snapshot().last_interarrival == 2.0

    def test_to_dict(self, trade):
        stats = StatsAccumulator(start_time=0.0)
        stats.record(trade, 1.0)
        data = stats.snapshot().to_dict()
        assert data["total_messages"] == 1
        assert data["per_type"] == {"trade": 1}
