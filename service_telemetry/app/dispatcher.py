"""
Periodic export and delivery of request metrics.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from shared.logging import get_logger
from shared.errors import DeliveryError
from .ingestion.collector import MetricsCollector
from .ingestion.metrics import Metric
from .exporters.newrelic import MetricsPayload, NewRelicClient


class DispatcherState(str, Enum):
    """Dispatcher states."""
    IDLE = "idle"
    EXPORTING = "exporting"


class MetricsDispatcher:
    """Exports every metric on a fixed interval and clears them only once
    the remote side acknowledged the payload.

    A failed or crashed cycle leaves the ledgers alone, so the next cycle
    resends the same data plus whatever arrived since.
    """

    def __init__(
        self,
        collector: MetricsCollector,
        client: NewRelicClient,
        envelope: Callable[[Dict[str, float]], MetricsPayload],
        interval_seconds: float = 60.0,
        request_timeout: float = 10.0,
        send_enabled: bool = True
    ):
        self.collector = collector
        self.client = client
        self.envelope = envelope
        self.interval_seconds = interval_seconds
        self.request_timeout = request_timeout
        self.send_enabled = send_enabled
        self.logger = get_logger("telemetry.dispatcher")

        self.state = DispatcherState.IDLE
        self.dispatch_stats: Dict[str, Any] = {
            "cycles": 0,
            "successes": 0,
            "failures": 0,
            "crashes": 0,
            "last_success": None
        }

        self.dispatch_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.running = False

    async def start(self):
        """Start the periodic dispatch loop."""
        if self.running:
            return
        self.running = True
        self._stop_event = asyncio.Event()
        self.dispatch_task = asyncio.create_task(self._dispatch_loop())
        self.logger.info("Metrics dispatcher started", interval=self.interval_seconds)

    async def stop(self, flush: bool = False):
        """Stop ticking; an in-flight cycle gets the request timeout to finish."""
        self.running = False
        if self._stop_event:
            self._stop_event.set()

        if self.dispatch_task:
            try:
                await asyncio.wait_for(self.dispatch_task, timeout=self.request_timeout)
            except asyncio.TimeoutError:
                self.logger.warning("In-flight export abandoned on shutdown")
            except asyncio.CancelledError:
                pass
            self.dispatch_task = None

        if flush:
            await self.run_cycle()

        self.logger.info("Metrics dispatcher stopped")

    async def _dispatch_loop(self):
        """Main dispatch loop."""
        while self.running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            await self.run_cycle()

    async def run_cycle(self) -> bool:
        """One export cycle behind a fault boundary; never raises."""
        try:
            return await self.dispatch_once()
        except Exception as e:
            self.dispatch_stats["crashes"] += 1
            self.logger.error("Metrics dispatch crashed", error=str(e), exc_info=True)
            return False

    async def dispatch_once(self) -> bool:
        """Export, deliver and, on acknowledgment, clear every metric.

        Returns whether the payload was acknowledged.
        """
        self.state = DispatcherState.EXPORTING
        self.dispatch_stats["cycles"] += 1
        try:
            exported: List[Metric] = []
            values: Dict[str, float] = {}
            for metric in self.collector.metrics:
                values.update(metric.export())
                exported.append(metric)

            payload = self.envelope(values)

            if not self.send_enabled:
                self.logger.info("Sending disabled, metrics retained", metric_count=len(values))
                return False

            try:
                await asyncio.wait_for(self.client.send(payload), timeout=self.request_timeout)
            except (DeliveryError, asyncio.TimeoutError) as e:
                self.dispatch_stats["failures"] += 1
                self.logger.warning(
                    "Metrics delivery failed, keeping data for next cycle",
                    error=str(e) or type(e).__name__,
                    metric_count=len(values)
                )
                return False

            for metric in exported:
                metric.clear()

            self.dispatch_stats["successes"] += 1
            self.dispatch_stats["last_success"] = time.time()
            self.logger.debug("Metrics delivered", metric_count=len(values))
            return True
        finally:
            self.state = DispatcherState.IDLE

    def get_stats(self) -> Dict[str, Any]:
        """Get dispatch statistics."""
        return {
            **self.dispatch_stats,
            "state": self.state.value,
            "interval_seconds": self.interval_seconds,
            "running": self.running
        }
