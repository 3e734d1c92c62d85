"""
StatsFeed -- push recomputed compliance stats to subscribers.

Services publish after every committed mutation.  Listeners run
synchronously in subscription order; an exception raised by a listener
propagates to the caller of the mutation (the mutation itself is already
committed at that point).
"""

from __future__ import annotations

from typing import Callable

from compliance_kernel.domain.dtos import ComplianceStats
from compliance_kernel.logging_config import get_logger

logger = get_logger("services.stats_feed")

StatsListener = Callable[[ComplianceStats], None]


class StatsFeed:
    """Subscriber list for stats pushes."""

    def __init__(self) -> None:
        self._listeners: list[StatsListener] = []

    def subscribe(self, listener: StatsListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, stats: ComplianceStats) -> None:
        for listener in list(self._listeners):
            listener(stats)
        logger.debug(
            "compliance_stats_published",
            extra={"listener_count": len(self._listeners), **stats.to_dict()},
        )
