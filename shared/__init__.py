"""
Shared utilities for the TursoConnector.

This package aggregates common building blocks consumed by the connector
service, its mocks and scripts:

- config: Connector configuration via pydantic-settings
- logging: Structured logging with message correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types
- retry: Resilient executor with exponential backoff

Do not import from service_* packages into shared/.
"""
