"""
Metric state: accumulators, snapshot ledgers, metric variants and the
request fan-out collector.
"""

from .accumulator import Accumulator, Snapshot
from .ledger import SnapshotLedger
from .metrics import (
    UNKNOWN_ENDPOINT,
    ErrorRateMetric,
    Metric,
    MetricKind,
    MetricNaming,
    RequestCountMetric,
    RequestRecord,
    ResponseTimeMetric,
    default_metrics,
)
from .collector import MetricsCollector

__all__ = [
    "Accumulator",
    "Snapshot",
    "SnapshotLedger",
    "UNKNOWN_ENDPOINT",
    "ErrorRateMetric",
    "Metric",
    "MetricKind",
    "MetricNaming",
    "RequestCountMetric",
    "RequestRecord",
    "ResponseTimeMetric",
    "default_metrics",
    "MetricsCollector",
]
