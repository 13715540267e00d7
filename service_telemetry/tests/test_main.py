"""
Tests for the telemetry host application.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import ConfigurationError, DeliveryError
from service_telemetry.app.main import TelemetryService
from service_telemetry.app.reporter import Reporter


@pytest.fixture
def delivery():
    """Create mock delivery client."""
    client = MagicMock()
    client.send = AsyncMock(return_value=None)
    return client


@pytest.fixture
def service(delivery):
    """Create TelemetryService with a mocked delivery client."""
    config = get_config(app_name="shop", license_key="license-123")
    reporter = Reporter.with_default_metrics(config, client=delivery)
    return TelemetryService(config, reporter=reporter)


def test_health_check(service):
    """Health reports a running dispatcher inside the lifespan."""
    with TestClient(service.app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "shop"
    assert data["status"] == "ok"


def test_stats_endpoint(service):
    """Stats expose collector and dispatcher state."""
    with TestClient(service.app) as client:
        client.get("/health")
        response = client.get("/telemetry/stats")

    data = response.json()
    assert data["collector"]["updates"] >= 1
    assert data["collector"]["sealed"] is True
    assert data["dispatcher"]["state"] == "idle"
    assert set(data["retained_snapshots"]) == {"request_count", "error_rate", "response_time"}


def test_shutdown_flushes(service, delivery):
    """Leaving the lifespan sends the requests seen so far."""
    with TestClient(service.app) as client:
        client.get("/health")
        client.get("/health")

    delivery.send.assert_awaited_once()
    metrics = delivery.send.call_args.args[0].components[0].metrics
    assert metrics["Component/ReqPerEndpoint//health[requests]"] == 2


def test_flush_delivers(service, delivery):
    """A manual flush sends pending metrics right away."""
    with TestClient(service.app) as client:
        client.get("/health")
        response = client.post("/telemetry/flush")

        assert response.status_code == 200
        assert response.json()["status"] == "delivered"
        metrics = delivery.send.call_args.args[0].components[0].metrics
        assert metrics["Component/ReqPerEndpoint//health[requests]"] == 1


def test_flush_failure_returns_error_response(service, delivery):
    """An unacknowledged flush maps to the standard error body."""
    delivery.send.side_effect = DeliveryError("Metrics API error: 503", status_code=503)

    with TestClient(service.app) as client:
        response = client.post("/telemetry/flush")

    assert response.status_code == 502
    data = response.json()
    assert data["code"] == "DELIVERY_ERROR"
    assert "not acknowledged" in data["message"]
    assert data["details"] == {}


def test_telemetry_exception_handler(service):
    """TelemetryException subclasses are rendered through to_response."""
    @service.app.get("/misconfigured")
    async def misconfigured():
        raise ConfigurationError("Please specify a license key", details={"field": "license_key"})

    with TestClient(service.app) as client:
        response = client.get("/misconfigured")

    assert response.status_code == 409
    assert response.json() == {
        "code": "CONFIGURATION_ERROR",
        "message": "Please specify a license key",
        "details": {"field": "license_key"}
    }
