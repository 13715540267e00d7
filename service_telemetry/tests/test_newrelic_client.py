"""
Unit tests for the New Relic plugin API client.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from shared.errors import DeliveryError
from service_telemetry.app.exporters.newrelic import (
    AgentInfo,
    ComponentInfo,
    MetricsPayload,
    NewRelicClient,
)


URL = "https://metrics.example.test/v1/metrics"


class TestNewRelicClient:
    """Test cases for NewRelicClient."""

    @pytest.fixture
    def client(self):
        """Create NewRelicClient instance."""
        return NewRelicClient("license-123", endpoint_url=URL, timeout=10.0)

    @pytest.fixture
    def payload(self):
        """Create sample payload."""
        return MetricsPayload(
            agent=AgentInfo(host="web-1", pid=4242, version="1.0.0"),
            components=[
                ComponentInfo(
                    name="shop",
                    guid="com.example.shop",
                    duration=60,
                    metrics={"Component/Req/overall[requests]": 3.0}
                )
            ]
        )

    def _response(self, status_code, body="{}"):
        return httpx.Response(
            status_code=status_code,
            content=body,
            request=httpx.Request("POST", URL)
        )

    def test_payload_schema(self, payload):
        """Serialized body follows the plugin API envelope."""
        body = json.loads(payload.to_json())

        assert body == {
            "agent": {"host": "web-1", "pid": 4242, "version": "1.0.0"},
            "components": [
                {
                    "name": "shop",
                    "guid": "com.example.shop",
                    "duration": 60,
                    "metrics": {"Component/Req/overall[requests]": 3.0}
                }
            ]
        }

    def test_non_finite_values_rejected(self, payload):
        """NaN or infinity cannot be serialized."""
        payload.components[0].metrics["bad"] = float("nan")

        with pytest.raises(DeliveryError):
            payload.to_json()

    @pytest.mark.asyncio
    async def test_send_success(self, client, payload):
        """A 200 response completes delivery with the required headers."""
        with patch('httpx.AsyncClient') as mock_client:
            post = AsyncMock(return_value=self._response(200, '{"status": "ok"}'))
            mock_client.return_value.__aenter__.return_value.post = post

            await client.send(payload)

            mock_client.assert_called_once_with(timeout=10.0)
            args, kwargs = post.call_args
            assert args[0] == URL
            assert kwargs["headers"]["X-License-Key"] == "license-123"
            assert kwargs["headers"]["Content-Type"] == "application/json"
            assert json.loads(kwargs["content"])["agent"]["pid"] == 4242

    @pytest.mark.asyncio
    async def test_send_rejected_status(self, client, payload):
        """Any status other than 200 is a delivery failure."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=self._response(403, '{"error": "invalid license"}')
            )

            with pytest.raises(DeliveryError) as exc_info:
                await client.send(payload)

            assert exc_info.value.status_code == 403
            assert exc_info.value.details["status_code"] == 403

    @pytest.mark.asyncio
    async def test_send_accepted_but_not_ok(self, client, payload):
        """Even other 2xx codes are not treated as acknowledgment."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=self._response(202)
            )

            with pytest.raises(DeliveryError):
                await client.send(payload)

    @pytest.mark.asyncio
    async def test_send_transport_error(self, client, payload):
        """Network errors surface as delivery failures."""
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(DeliveryError) as exc_info:
                await client.send(payload)

            assert exc_info.value.status_code is None
            assert "connection refused" in exc_info.value.details["http_error"]

    @pytest.mark.asyncio
    async def test_verbose_logs_payload_and_response(self, payload):
        """Verbose mode logs the outgoing payload and the response body."""
        client = NewRelicClient("license-123", endpoint_url=URL, verbose=True)

        with patch('httpx.AsyncClient') as mock_client, \
                patch.object(client, "logger") as logger:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=self._response(200, '{"status": "ok"}')
            )

            await client.send(payload)

            messages = [call.args[0] for call in logger.info.call_args_list]
            assert messages == ["Sending metrics", "Response from metrics API"]
