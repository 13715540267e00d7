"""
Shared utilities for the request telemetry reporter.

This package aggregates common building blocks consumed by the service code:

- config: Reporter configuration via pydantic-settings
- logging: Structured logging with secret redaction
- errors: Canonical error types and responses

Do not import from service_* packages into shared/.
"""
