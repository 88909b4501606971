"""
Subscription registry: the set of topics the server has confirmed.
"""

from typing import Iterable

from market_stream.core.models import Topic, normalize_topics


class SubscriptionRegistry:
    """
    Authoritative set of active topics.

    Mutated only by the session when a subscribe/unsubscribe is
    acknowledged. Each mutation publishes a new frozenset, so readers on a
    status path always see a complete set without locking.
    """

    def __init__(self, topics: Iterable[str] = ()):
        self._topics: frozenset[Topic] = frozenset(normalize_topics(topics))

    def apply_subscribe(self, topics: Iterable[str]) -> tuple[Topic, ...]:
        """Add topics; already present ones are a no-op. Returns the newly added."""
        added = tuple(t for t in normalize_topics(topics) if t not in self._topics)
        if added:
            self._topics = self._topics.union(added)
        return added

    def apply_unsubscribe(self, topics: Iterable[str]) -> tuple[Topic, ...]:
        """Remove topics; absent ones are a no-op. Returns the removed."""
        removed = tuple(t for t in normalize_topics(topics) if t in self._topics)
        if removed:
            self._topics = self._topics.difference(removed)
        return removed

    def snapshot(self) -> tuple[Topic, ...]:
        """Active topics in sorted order."""
        return tuple(sorted(self._topics))

    def __contains__(self, topic: object) -> bool:
        return topic in self._topics

    def __len__(self) -> int:
        return len(self._topics)

    def __repr__(self) -> str:
        return f"SubscriptionRegistry({list(self.snapshot())!r})"
