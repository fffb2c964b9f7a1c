"""
Shared utilities for the Fantasy Contest Platform.

This package aggregates common building blocks consumed by all services:

- config: Service and cache configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator with bounded backoff
- background: Detached background task execution
- base_service: FastAPI service skeleton (health, metrics, error handlers)

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
