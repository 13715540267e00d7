"""
Reporter wiring metrics, collector and dispatcher together.

A reporter is constructed explicitly and passed to whatever records
requests; there is no process-wide default instance.
"""

import os
import socket
from typing import Dict, Iterable, List, Optional, Tuple

from shared.config import TelemetryConfig
from shared.logging import get_logger, register_secrets
from shared.errors import ConfigurationError
from .ingestion.collector import MetricsCollector
from .ingestion.metrics import Metric, RequestRecord, default_metrics
from .exporters.newrelic import AgentInfo, ComponentInfo, MetricsPayload, NewRelicClient
from .dispatcher import MetricsDispatcher


class Reporter:
    """Keeps track of the app metrics and ships them periodically."""

    def __init__(
        self,
        config: TelemetryConfig,
        metrics: Iterable[Metric] = (),
        client: Optional[NewRelicClient] = None
    ):
        if not config.license_key:
            raise ConfigurationError("Please specify a license key")

        try:
            self.host = socket.gethostname()
        except OSError as e:
            raise ConfigurationError("Can not get hostname", details={"error": str(e)}) from e

        self.config = config
        self.pid = os.getpid()
        self.logger = get_logger("telemetry.reporter")
        register_secrets([config.license_key])

        self.collector = MetricsCollector(metrics)
        self.client = client or NewRelicClient(
            license_key=config.license_key,
            endpoint_url=config.endpoint_url,
            timeout=config.request_timeout_seconds,
            verbose=config.verbose
        )
        self.dispatcher = MetricsDispatcher(
            collector=self.collector,
            client=self.client,
            envelope=self.build_payload,
            interval_seconds=config.reporting_interval_seconds,
            request_timeout=config.request_timeout_seconds,
            send_enabled=config.send_enabled
        )

    @classmethod
    def with_default_metrics(cls, config: TelemetryConfig, client: Optional[NewRelicClient] = None) -> "Reporter":
        """Reporter with request count, error rate and response time registered."""
        return cls(
            config,
            metrics=default_metrics(max_snapshots=config.max_retained_snapshots),
            client=client
        )

    @property
    def metrics(self):
        return self.collector.metrics

    @property
    def report_duration(self) -> int:
        """Whole seconds covered by one payload, never below one."""
        return max(1, round(self.config.reporting_interval_seconds))

    def add_metric(self, metric: Metric) -> None:
        """Register a metric; rejected once reporting has started."""
        self.collector.register(metric)

    def begin_request(self, endpoint: Optional[str]) -> RequestRecord:
        """Start timing a request."""
        return RequestRecord.begin(endpoint)

    def end_request(self, record: RequestRecord, status_code: int) -> List[Tuple[Metric, Exception]]:
        """Complete the record and update every metric."""
        return self.collector.update(record.finish(status_code))

    def build_payload(self, values: Dict[str, float]) -> MetricsPayload:
        """Wrap metric values in the plugin API envelope."""
        return MetricsPayload(
            agent=AgentInfo(host=self.host, pid=self.pid, version=self.config.agent_version),
            components=[
                ComponentInfo(
                    name=self.config.app_name,
                    guid=self.config.guid,
                    duration=self.report_duration,
                    metrics=values
                )
            ]
        )

    async def start(self):
        """Start periodic reporting; the metric set is fixed from here on."""
        self.collector.seal()
        await self.dispatcher.start()
        self.logger.info(
            "Reporter started",
            app_name=self.config.app_name,
            metrics=[metric.kind.value for metric in self.metrics]
        )

    async def stop(self, flush: bool = False):
        """Stop periodic reporting, optionally sending one last payload."""
        await self.dispatcher.stop(flush=flush)
        self.logger.info("Reporter stopped")
