"""
Delivery of metric payloads to the New Relic plugin API.
"""

import json
import math
from typing import Dict, List

import httpx
from pydantic import BaseModel, Field

from shared.config import DEFAULT_ENDPOINT_URL
from shared.logging import get_logger
from shared.errors import DeliveryError


class AgentInfo(BaseModel):
    """Reporting process."""
    host: str
    pid: int
    version: str


class ComponentInfo(BaseModel):
    """One reporting component and its metric values."""
    name: str
    guid: str
    duration: int
    metrics: Dict[str, float] = Field(default_factory=dict)


class MetricsPayload(BaseModel):
    """Request body accepted by the plugin API."""
    agent: AgentInfo
    components: List[ComponentInfo]

    def to_json(self, indent=None) -> str:
        """Serialize, rejecting values the API cannot represent."""
        for component in self.components:
            bad = [name for name, value in component.metrics.items() if not math.isfinite(value)]
            if bad:
                raise DeliveryError(
                    "Payload contains non-finite metric values",
                    details={"metrics": sorted(bad)}
                )
        return json.dumps(self.model_dump(), indent=indent, allow_nan=False)


class NewRelicClient:
    """Posts metric payloads; anything but HTTP 200 is a delivery failure."""

    def __init__(self, license_key: str, endpoint_url: str = DEFAULT_ENDPOINT_URL,
                 timeout: float = 10.0, verbose: bool = False):
        self.license_key = license_key
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.verbose = verbose
        self.logger = get_logger("telemetry.exporter.newrelic")

    def _headers(self) -> Dict[str, str]:
        return {
            "X-License-Key": self.license_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def send(self, payload: MetricsPayload) -> None:
        """Deliver the payload or raise ``DeliveryError``."""
        body = payload.to_json()

        if self.verbose:
            self.logger.info("Sending metrics", payload=payload.to_json(indent="\t"))

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint_url,
                    content=body,
                    headers=self._headers()
                )
        except httpx.HTTPError as e:
            self.logger.error("Post request to metrics API failed", error=str(e))
            raise DeliveryError(
                "Metrics API unavailable",
                details={"http_error": str(e)}
            ) from e

        if self.verbose:
            self.logger.info("Response from metrics API", status_code=response.status_code, body=response.text)

        if response.status_code != 200:
            self.logger.error("Metrics API rejected payload", status_code=response.status_code)
            raise DeliveryError(
                f"Metrics API error: {response.status_code}",
                status_code=response.status_code
            )
