"""
Request metrics reported per endpoint.

Every metric follows the same capability: ``update`` from a finished
request, ``export`` a name -> value mapping, ``clear`` once the export was
delivered. Export never loses data: it rotates the live accumulator into
the snapshot ledger and reports the sum of everything retained since the
last clear.
"""

import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from shared.errors import MissingAttributeError
from .accumulator import Accumulator
from .ledger import SnapshotLedger


UNKNOWN_ENDPOINT = "other"


@dataclass
class RequestRecord:
    """Attributes of one request, filled at start and completed at end."""
    endpoint: Optional[str] = None
    start_time: Optional[float] = None
    status_code: Optional[int] = None

    @classmethod
    def begin(cls, endpoint: Optional[str], clock: Callable[[], float] = time.monotonic) -> "RequestRecord":
        return cls(endpoint=endpoint, start_time=clock())

    def finish(self, status_code: int) -> "RequestRecord":
        self.status_code = status_code
        return self


def endpoint_name(record: RequestRecord) -> str:
    """Aggregation key for a record; unset endpoints fall into ``other``."""
    return record.endpoint or UNKNOWN_ENDPOINT


class MetricKind(str, Enum):
    """Metric variants."""
    REQUEST_COUNT = "request_count"
    ERROR_RATE = "error_rate"
    RESPONSE_TIME = "response_time"


@dataclass(frozen=True)
class MetricNaming:
    """Export key layout: ``<prefix><endpoint><unit>`` and ``<overall_prefix><unit>``."""
    prefix: str
    overall_prefix: str
    unit: str

    def endpoint_key(self, endpoint: str) -> str:
        return f"{self.prefix}{endpoint}{self.unit}"

    @property
    def overall_key(self) -> str:
        return f"{self.overall_prefix}{self.unit}"


REQUEST_COUNT_NAMING = MetricNaming(
    prefix="Component/ReqPerEndpoint/",
    overall_prefix="Component/Req/overall",
    unit="[requests]"
)
ERROR_RATE_NAMING = MetricNaming(
    prefix="Component/ErrorRatePerEndpoint/",
    overall_prefix="Component/ErrorRate/overall",
    unit="[percent]"
)
RESPONSE_TIME_NAMING = MetricNaming(
    prefix="Component/ResponseTimePerEndpoint/",
    overall_prefix="Component/ResponseTime/overall",
    unit="[ms]"
)


class Metric(Protocol):
    """Capability shared by every reported metric."""

    kind: MetricKind
    naming: MetricNaming

    def update(self, record: RequestRecord) -> None:
        ...

    def export(self) -> Dict[str, float]:
        ...

    def clear(self) -> None:
        ...


class _MetricState:
    """Accumulator and ledger of one metric, guarded by a single lock."""

    def __init__(self, fields: Tuple[str, ...], name: str, max_snapshots: Optional[int]):
        self.lock = threading.Lock()
        self.accumulator = Accumulator(fields)
        self.ledger = SnapshotLedger(self.accumulator.fields, max_snapshots=max_snapshots, name=name)
        self.endpoints = {UNKNOWN_ENDPOINT}

    def add(self, endpoint: str, **increments: float) -> None:
        with self.lock:
            self.accumulator.add(endpoint, **increments)
            self.endpoints.add(endpoint)

    def rotate(self) -> Tuple[Dict[str, Counter], List[str]]:
        """Move live values into the ledger and return retained totals."""
        with self.lock:
            self.ledger.append(self.accumulator.rotate())
            return self.ledger.totals(), sorted(self.endpoints)

    def clear(self) -> int:
        with self.lock:
            return self.ledger.clear()

    def retained(self) -> int:
        with self.lock:
            return len(self.ledger)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator > 0:
        return float(numerator) / float(denominator)
    return 0.0


def _ratio_values(naming: MetricNaming, numerators: Counter, denominators: Counter,
                  endpoints: Iterable[str]) -> Dict[str, float]:
    values = {
        naming.endpoint_key(endpoint): _ratio(numerators.get(endpoint, 0), denominators.get(endpoint, 0))
        for endpoint in endpoints
    }
    # Overall is total over total, not the mean of endpoint ratios
    values[naming.overall_key] = _ratio(sum(numerators.values()), sum(denominators.values()))
    return values


class RequestCountMetric:
    """Number of requests per endpoint."""

    kind = MetricKind.REQUEST_COUNT
    FIELDS = ("count",)

    def __init__(self, naming: MetricNaming = REQUEST_COUNT_NAMING, max_snapshots: Optional[int] = None):
        self.naming = naming
        self._state = _MetricState(self.FIELDS, self.kind.value, max_snapshots)

    @property
    def retained_snapshots(self) -> int:
        return self._state.retained()

    def update(self, record: RequestRecord) -> None:
        self._state.add(endpoint_name(record), count=1)

    def export(self) -> Dict[str, float]:
        totals, endpoints = self._state.rotate()
        counts = totals["count"]
        values = {self.naming.endpoint_key(endpoint): float(counts.get(endpoint, 0)) for endpoint in endpoints}
        values[self.naming.overall_key] = float(sum(counts.values()))
        return values

    def clear(self) -> None:
        self._state.clear()


class ErrorRateMetric:
    """Share of requests answered with a status code of 400 or above."""

    kind = MetricKind.ERROR_RATE
    FIELDS = ("requests", "errors")
    ERROR_STATUS = 400

    def __init__(self, naming: MetricNaming = ERROR_RATE_NAMING, max_snapshots: Optional[int] = None):
        self.naming = naming
        self._state = _MetricState(self.FIELDS, self.kind.value, max_snapshots)

    @property
    def retained_snapshots(self) -> int:
        return self._state.retained()

    def update(self, record: RequestRecord) -> None:
        if record.status_code is None:
            raise MissingAttributeError("status_code", self.kind.value)
        is_error = 1 if record.status_code >= self.ERROR_STATUS else 0
        self._state.add(endpoint_name(record), requests=1, errors=is_error)

    def export(self) -> Dict[str, float]:
        totals, endpoints = self._state.rotate()
        return _ratio_values(self.naming, totals["errors"], totals["requests"], endpoints)

    def clear(self) -> None:
        self._state.clear()


class ResponseTimeMetric:
    """Mean response time per endpoint, in milliseconds."""

    kind = MetricKind.RESPONSE_TIME
    FIELDS = ("requests", "latency_ms")

    def __init__(self, naming: MetricNaming = RESPONSE_TIME_NAMING, max_snapshots: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.naming = naming
        self.clock = clock
        self._state = _MetricState(self.FIELDS, self.kind.value, max_snapshots)

    @property
    def retained_snapshots(self) -> int:
        return self._state.retained()

    def update(self, record: RequestRecord) -> None:
        if record.start_time is None:
            raise MissingAttributeError("start_time", self.kind.value)
        elapsed_ms = max(0.0, (self.clock() - record.start_time) * 1000.0)
        self._state.add(endpoint_name(record), requests=1, latency_ms=elapsed_ms)

    def export(self) -> Dict[str, float]:
        totals, endpoints = self._state.rotate()
        return _ratio_values(self.naming, totals["latency_ms"], totals["requests"], endpoints)

    def clear(self) -> None:
        self._state.clear()


def default_metrics(max_snapshots: Optional[int] = None,
                    clock: Callable[[], float] = time.monotonic) -> List[Metric]:
    """The standard metric set, in registration order."""
    return [
        RequestCountMetric(max_snapshots=max_snapshots),
        ErrorRateMetric(max_snapshots=max_snapshots),
        ResponseTimeMetric(max_snapshots=max_snapshots, clock=clock),
    ]
