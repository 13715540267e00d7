"""
Outbound exporters for collected request metrics.
"""

from .newrelic import AgentInfo, ComponentInfo, MetricsPayload, NewRelicClient

__all__ = ["AgentInfo", "ComponentInfo", "MetricsPayload", "NewRelicClient"]
