# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Prometheus metrics for access decisions.

This module counts grants and denials per decision source, observes
decision latency and counts remote transport failures.
"""

import time
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST,
)


logger = logging.getLogger(__name__)


class DecisionMetrics:
    """Metrics collector for grbac decisions."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None,
                 namespace: str = "grbac", enabled: bool = True):
        """
        Initialize decision metrics.

        Args:
            registry: Registry to register metrics on; a private one is
                created when omitted
            namespace: Metric name prefix
            enabled: Disable to turn every record call into a no-op
        """
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace
        self.enabled = enabled
        self._counts: Dict[str, int] = {}

        self.decisions = Counter(
            f'{namespace}_decisions_total',
            'Total number of access decisions',
            ['source', 'outcome'],
            registry=self.registry
        )

        self.decision_latency = Histogram(
            f'{namespace}_decision_duration_seconds',
            'Access decision duration in seconds',
            ['source'],
            buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry
        )

        self.remote_errors = Counter(
            f'{namespace}_remote_errors_total',
            'Total number of remote authority transport failures',
            ['reason'],
            registry=self.registry
        )

        self.compilations = Counter(
            f'{namespace}_rule_compilations_total',
            'Total number of rule index compilations',
            ['group', 'status'],
            registry=self.registry
        )

        logger.info("Decision metrics initialized")

    def record_decision(self, source: str, allowed: bool) -> None:
        """Record a grant or a denial."""
        if not self.enabled:
            return

        outcome = "granted" if allowed else "denied"
        key = f"{source}_{outcome}"
        self._counts[key] = self._counts.get(key, 0) + 1
        self.decisions.labels(source=source, outcome=outcome).inc()

        logger.debug(f"Recorded decision: {source} -> {outcome}")

    def observe_latency(self, source: str, duration: float) -> None:
        """Record decision latency."""
        if not self.enabled:
            return
        self.decision_latency.labels(source=source).observe(duration)

    def record_remote_error(self, timed_out: bool) -> None:
        """Record a remote transport failure."""
        if not self.enabled:
            return
        reason = "timeout" if timed_out else "network"
        self._counts[f"remote_{reason}"] = self._counts.get(f"remote_{reason}", 0) + 1
        self.remote_errors.labels(reason=reason).inc()

    def record_compilation(self, group: str, success: bool) -> None:
        """Record a rule index compilation."""
        if not self.enabled:
            return
        self.compilations.labels(group=group, status="success" if success else "failure").inc()

    @contextmanager
    def timer(self, source: str) -> Iterator[None]:
        """Context manager observing the latency of a decision."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.observe_latency(source, time.perf_counter() - start_time)

    def get_count(self, source: str, allowed: bool) -> int:
        """Number of decisions recorded for a source and outcome."""
        return self._counts.get(f"{source}_{'granted' if allowed else 'denied'}", 0)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the recorded counts."""
        return {
            "enabled": self.enabled,
            "counts": self._counts.copy(),
        }

    def export(self) -> str:
        """Export metrics in Prometheus text format."""
        return generate_latest(self.registry).decode('utf-8')


def create_decision_metrics(registry: Optional[CollectorRegistry] = None,
                            namespace: str = "grbac",
                            enabled: bool = True) -> DecisionMetrics:
    """
    Create a new decision metrics collector.

    Args:
        registry: Prometheus registry
        namespace: Metric name prefix
        enabled: Enable metrics collection

    Returns:
        DecisionMetrics instance
    """
    return DecisionMetrics(registry=registry, namespace=namespace, enabled=enabled)
