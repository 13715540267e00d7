"""
Request fan-out for the telemetry reporter.
"""

import threading
from typing import Dict, Any, Iterable, List, Tuple

from shared.logging import get_logger
from shared.errors import ConfigurationError
from .metrics import Metric, RequestRecord


class MetricsCollector:
    """Holds the registered metrics and feeds every finished request to each."""

    def __init__(self, metrics: Iterable[Metric] = ()):
        self.logger = get_logger("telemetry.collector")
        self._metrics: List[Metric] = []
        self._sealed = False
        self._stats_lock = threading.Lock()
        self.collection_stats = {
            "updates": 0,
            "failed_updates": 0,
        }
        for metric in metrics:
            self.register(metric)

    @property
    def metrics(self) -> Tuple[Metric, ...]:
        return tuple(self._metrics)

    def register(self, metric: Metric) -> None:
        """Add a metric; only allowed until the collector is sealed."""
        if self._sealed:
            raise ConfigurationError(
                "Metrics are fixed once reporting has started",
                details={"metric": metric.kind.value}
            )
        self._metrics.append(metric)
        self.logger.debug("Metric registered", metric=metric.kind.value, position=len(self._metrics))

    def seal(self) -> None:
        self._sealed = True

    def update(self, record: RequestRecord) -> List[Tuple[Metric, Exception]]:
        """Update every metric in registration order.

        A failing metric does not stop the others; failures are logged and
        returned as (metric, exception) pairs in registration order, never
        raised.
        """
        failures: List[Tuple[Metric, Exception]] = []
        for position, metric in enumerate(self._metrics):
            try:
                metric.update(record)
            except Exception as e:
                failures.append((metric, e))
                with self._stats_lock:
                    self.collection_stats["failed_updates"] += 1
                self.logger.error(
                    "Metric update failed",
                    metric=metric.kind.value,
                    position=position,
                    endpoint=record.endpoint,
                    error=str(e)
                )

        with self._stats_lock:
            self.collection_stats["updates"] += 1

        return failures

    def get_collection_stats(self) -> Dict[str, Any]:
        """Get collection statistics."""
        with self._stats_lock:
            stats = dict(self.collection_stats)
        return {
            **stats,
            "registered_metrics": [metric.kind.value for metric in self._metrics],
            "sealed": self._sealed
        }
