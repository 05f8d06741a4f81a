"""In-process analytics cache with a per-metric refresh cooldown.

Holds the last computed payload for each metric type and the wall-clock time of
its last refresh. State lives only as long as the process: a restart resets every
cooldown. Each server instance keeps its own clock, so the throttle is enforced
per instance, not globally.

The cache is constructed once per application (see ``main.lifespan``) and handed
to services through the ``get_analytics_cache`` dependency.
"""
import time
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

import structlog

from charmshop.models.analytics_snapshot import MetricType

logger = structlog.get_logger(__name__)

COOLDOWN_PERIOD = timedelta(minutes=5)


def _epoch_ms() -> float:
    return time.time() * 1000


class AnalyticsCache:
    """Memory mirror of metric payloads plus refresh cooldown bookkeeping."""

    def __init__(
        self,
        cooldown: timedelta = COOLDOWN_PERIOD,
        clock: Callable[[], float] = _epoch_ms,
    ):
        """
        Initialize the cache.

        Args:
            cooldown: Minimum interval between two refreshes of one metric type
            clock: Returns the current time in epoch milliseconds
        """
        self.cooldown_ms = int(cooldown.total_seconds() * 1000)
        self._clock = clock
        self._snapshots: Dict[MetricType, Any] = {}
        self._last_refresh: Dict[MetricType, float] = {}

    def now(self) -> float:
        return self._clock()

    def can_refresh(self, metric_type: MetricType) -> bool:
        """True when the metric was never refreshed or its cooldown has elapsed."""
        last_refresh = self._last_refresh.get(metric_type)
        if last_refresh is None:
            return True
        return self.now() - last_refresh >= self.cooldown_ms

    def remaining_cooldown(self, metric_type: MetricType) -> int:
        """Milliseconds left before the metric may be refreshed again (0 if refreshable)."""
        last_refresh = self._last_refresh.get(metric_type)
        if last_refresh is None:
            return 0
        remaining = self.cooldown_ms - (self.now() - last_refresh)
        return max(0, int(remaining))

    def get(self, metric_type: MetricType) -> Optional[Any]:
        return self._snapshots.get(metric_type)

    def remember(self, metric_type: MetricType, data: Any) -> None:
        """Mirror a payload loaded from storage without starting a cooldown."""
        self._snapshots[metric_type] = data

    def mark_refreshed(self, metric_type: MetricType, data: Any) -> None:
        """Store a freshly computed payload and start the metric's cooldown."""
        self._snapshots[metric_type] = data
        self._last_refresh[metric_type] = self.now()
        logger.debug("analytics_cache_marked", metric_type=metric_type.value)

    def cooldown_status(self) -> Dict[str, Dict[str, Any]]:
        """Refreshability and remaining cooldown for every metric type. No side effects."""
        return {
            metric_type.value: {
                "canRefresh": self.can_refresh(metric_type),
                "remainingMs": self.remaining_cooldown(metric_type),
            }
            for metric_type in MetricType
        }
