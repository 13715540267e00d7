"""
FastAPI integration: record every HTTP request with a reporter.
"""

from typing import Optional

from fastapi import FastAPI, Request

from .reporter import Reporter


def route_endpoint(request: Request) -> Optional[str]:
    """Matched route template, e.g. ``/items/{item_id}``; None if unmatched."""
    route = request.scope.get("route")
    return getattr(route, "path", None)


def install_request_telemetry(app: FastAPI, reporter: Reporter) -> None:
    """Register a middleware feeding each request into the reporter."""

    @app.middleware("http")
    async def record_request_telemetry(request: Request, call_next):
        record = reporter.begin_request(None)
        try:
            response = await call_next(request)
        except Exception:
            record.endpoint = route_endpoint(request)
            reporter.end_request(record, 500)
            raise

        # Routing happens inside call_next, so the route is known only now
        record.endpoint = route_endpoint(request)
        reporter.end_request(record, response.status_code)
        return response
