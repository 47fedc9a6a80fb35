"""
Shared metrics configuration for the Trust Layer.
"""

import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class TrustMetrics:
    """Prometheus metrics for key-set refreshes, token validation and signing.

    Each instance owns its registry so independently constructed components
    never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.keyset_refresh_total = Counter(
            "keyset_refresh_total",
            "Key-set refresh attempts",
            ["outcome"],
            registry=self.registry,
        )
        self.keyset_fetch_duration_seconds = Histogram(
            "keyset_fetch_duration_seconds",
            "Key-set fetch duration in seconds",
            registry=self.registry,
        )
        self.token_validations_total = Counter(
            "token_validations_total",
            "Token validations by token use and outcome",
            ["token_use", "outcome"],
            registry=self.registry,
        )
        self.signature_operations_total = Counter(
            "signature_operations_total",
            "Sign and verify operations by outcome",
            ["operation", "outcome"],
            registry=self.registry,
        )

    @contextmanager
    def time_keyset_fetch(self):
        """Observe the duration of a key-set fetch."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.keyset_fetch_duration_seconds.observe(time.perf_counter() - start)

    def record_refresh(self, outcome: str) -> None:
        self.keyset_refresh_total.labels(outcome=outcome).inc()

    def record_validation(self, token_use: str, outcome: str) -> None:
        self.token_validations_total.labels(token_use=token_use, outcome=outcome).inc()

    def record_signature(self, operation: str, outcome: str) -> None:
        self.signature_operations_total.labels(operation=operation, outcome=outcome).inc()

    def sample(self, name: str, **labels) -> float:
        """Current value of a sample, 0.0 when it has not been recorded."""
        value = self.registry.get_sample_value(name, labels or None)
        return value or 0.0

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)
