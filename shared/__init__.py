"""
Shared utilities for the Trust Layer.

This package aggregates common building blocks consumed by the trust service:

- config: Settings via pydantic-settings
- logging: Structured logging with trace correlation and secret redaction
- metrics: Prometheus metrics helpers
- errors: Error taxonomy and responses
- test_helpers: Key, token and custodian factories for tests

Do not import from service_trust into shared/.
"""
