"""
Request telemetry package.

Collects per-endpoint request counts, error rates and response times in
process and periodically ships them to the New Relic plugin API. Data
stays retained until a delivery is acknowledged.
"""

from .reporter import Reporter
from .dispatcher import DispatcherState, MetricsDispatcher
from .middleware import install_request_telemetry

__all__ = ["Reporter", "DispatcherState", "MetricsDispatcher", "install_request_telemetry"]
