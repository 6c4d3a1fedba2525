"""
Shared utilities for the Template Registry.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for outbound calls
- circuit_breaker: Resilient external call protection
- tracing: Optional OpenTelemetry setup

Do not import from service packages into shared/.
"""
