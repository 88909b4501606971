"""
Message statistics.

Running counters of message counts, per-event-type frequency and
inter-arrival timing. Memory use is constant: the inter-arrival mean and
variance are maintained with Welford's online algorithm.
"""

import math
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Union

from market_stream.core.models import EventType, MarketEvent

UNRECOGNIZED_TAG = "unrecognized"


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Immutable view of the accumulator at one point in time.

    Attributes:
        total_messages: Number of recorded messages
        per_type: Count per event-type tag; values sum to ``total_messages``
        mean_interarrival: Running mean gap between messages (seconds)
        stddev_interarrival: Sample standard deviation of the gap (seconds)
        last_interarrival: Most recent gap (seconds)
        window_start: Clock time the accumulator started counting
    """

    total_messages: int = 0
    per_type: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    mean_interarrival: Optional[float] = None
    stddev_interarrival: Optional[float] = None
    last_interarrival: Optional[float] = None
    window_start: float = 0.0

    def count(self, tag: Union[str, EventType]) -> int:
        key = tag.value if isinstance(tag, EventType) else tag
        return self.per_type.get(key, 0)

    def frequency(self, now: float) -> float:
        """Messages per second since ``window_start``."""
        elapsed = now - self.window_start
        if elapsed <= 0:
            return 0.0
        return self.total_messages / elapsed

    def to_dict(self) -> dict:
        return {
            "total_messages": self.total_messages,
            "per_type": dict(self.per_type),
            "mean_interarrival": self.mean_interarrival,
            "stddev_interarrival": self.stddev_interarrival,
            "last_interarrival": self.last_interarrival,
            "window_start": self.window_start,
        }


class StatsAccumulator:
    """
    Accumulates message statistics for one session.

    Only the session task calls ``record``; each call publishes a fresh
    ``StatsSnapshot`` by reference swap so status readers never observe a
    partially applied update.

    Example:
        >>> stats = StatsAccumulator(start_time=0.0)
        >>> stats.record(trade_event, arrival_time=1.0)
        >>> stats.snapshot().total_messages
        1
    """

    def __init__(
        self,
        start_time: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._window_start = clock() if start_time is None else start_time
        self._total = 0
        self._per_type: dict[str, int] = {}
        self._last_arrival: Optional[float] = None
        self._last_gap: Optional[float] = None
        # Welford state
        self._gap_count = 0
        self._gap_mean = 0.0
        self._gap_m2 = 0.0
        self._snapshot = StatsSnapshot(window_start=self._window_start)

    @property
    def window_start(self) -> float:
        return self._window_start

    def record(
        self,
        event: Union[MarketEvent, EventType, str],
        arrival_time: Optional[float] = None,
    ) -> StatsSnapshot:
        """
        Count one message.

        Args:
            event: Decoded event, or a bare tag such as ``"unrecognized"``
            arrival_time: Clock time the frame arrived (defaults to now)

        Returns:
            The newly published snapshot
        """
        now = self._clock() if arrival_time is None else arrival_time
        tag = _tag_of(event)

        self._total += 1
        self._per_type[tag] = self._per_type.get(tag, 0) + 1

        if self._last_arrival is not None:
            gap = max(0.0, now - self._last_arrival)
            self._last_gap = gap
            self._gap_count += 1
            delta = gap - self._gap_mean
            self._gap_mean += delta / self._gap_count
            self._gap_m2 += delta * (gap - self._gap_mean)
        self._last_arrival = now

        self._snapshot = self._build_snapshot()
        return self._snapshot

    def snapshot(self) -> StatsSnapshot:
        return self._snapshot

    def _build_snapshot(self) -> StatsSnapshot:
        mean = self._gap_mean if self._gap_count else None
        stddev = None
        if self._gap_count >= 2:
            stddev = math.sqrt(self._gap_m2 / (self._gap_count - 1))
        elif self._gap_count == 1:
            stddev = 0.0
        return StatsSnapshot(
            total_messages=self._total,
            per_type=MappingProxyType(dict(self._per_type)),
            mean_interarrival=mean,
            stddev_interarrival=stddev,
            last_interarrival=self._last_gap,
            window_start=self._window_start,
        )


def _tag_of(event: Union[MarketEvent, EventType, str]) -> str:
    if isinstance(event, EventType):
        return event.value
    if isinstance(event, str):
        return event
    return event.event_type.value
