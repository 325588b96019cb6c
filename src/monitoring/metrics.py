"""
Prometheus Metrics for PNRGOV Reconciliation

Counters and histograms describing comparison runs. Every instance owns its
registry unless one is supplied, so independent comparisons never clash.
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest, push_to_gateway

logger = logging.getLogger(__name__)


class ReconciliationMetrics:
    """Prometheus metrics for comparison runs."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = "pnrgov"):
        """
        Initialize reconciliation metrics.

        Args:
            registry: Prometheus registry (a private one is created if not provided)
            namespace: Metric name prefix
        """
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace

        # Run counter
        self.comparison_runs_total = Counter(
            'comparison_runs_total',
            'Total number of comparison runs',
            ['status'],
            namespace=namespace,
            registry=self.registry
        )

        # Passenger and PNR outcomes
        self.passengers_total = Counter(
            'passengers_total',
            'Passenger keys by reconciliation outcome',
            ['outcome'],
            namespace=namespace,
            registry=self.registry
        )

        self.pnrs_total = Counter(
            'pnrs_total',
            'PNR keys by reconciliation outcome',
            ['outcome'],
            namespace=namespace,
            registry=self.registry
        )

        self.structural_warnings_total = Counter(
            'structural_warnings_total',
            'Structural warnings reported by comparison runs',
            namespace=namespace,
            registry=self.registry
        )

        # Run duration
        self.comparison_duration_seconds = Histogram(
            'comparison_duration_seconds',
            'Duration of comparison runs in seconds',
            namespace=namespace,
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300],
            registry=self.registry
        )

        # Last run gauges
        self.last_dropped_passengers = Gauge(
            'last_dropped_passengers',
            'Dropped passengers in the most recent comparison',
            namespace=namespace,
            registry=self.registry
        )

        self.last_flight_match = Gauge(
            'last_flight_match',
            'Whether input and output flights matched in the most recent comparison (1/0)',
            namespace=namespace,
            registry=self.registry
        )

        logger.debug("ReconciliationMetrics initialized")

    def record_comparison(self, result) -> None:
        """
        Record a successful comparison.

        Args:
            result: ComparisonResult of the run
        """
        self.comparison_runs_total.labels(status="success").inc()
        self.comparison_duration_seconds.observe(result.elapsed_seconds)

        passenger_outcomes = {
            "processed": result.processed_count,
            "dropped": result.dropped_count,
            "added": result.added_count,
            "duplicate": result.duplicate_count,
        }
        for outcome, count in passenger_outcomes.items():
            self.passengers_total.labels(outcome=outcome).inc(count)

        pnr_outcomes = {
            "processed": len(result.processed_pnr_keys),
            "dropped": len(result.dropped_pnr_keys),
            "added": len(result.added_pnr_keys),
        }
        for outcome, count in pnr_outcomes.items():
            self.pnrs_total.labels(outcome=outcome).inc(count)

        self.structural_warnings_total.inc(len(result.warnings))
        self.last_dropped_passengers.set(result.dropped_count)
        self.last_flight_match.set(1 if result.flight_comparison.is_match else 0)

    def record_failure(self, error_kind: str, duration_seconds: float) -> None:
        """
        Record a failed comparison.

        Args:
            error_kind: ErrorKind value of the failure
            duration_seconds: Time spent before failing
        """
        self.comparison_runs_total.labels(status=error_kind).inc()
        self.comparison_duration_seconds.observe(duration_seconds)

    def export_text(self) -> str:
        """Render all metrics in the Prometheus exposition format."""
        return generate_latest(self.registry).decode("utf-8")

    def push(self, gateway_url: str, job_name: str, grouping_key: Optional[Dict] = None) -> None:
        """
        Push metrics to a Prometheus Pushgateway.

        Args:
            gateway_url: Pushgateway URL
            job_name: Job name for metrics
            grouping_key: Optional grouping key labels
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise
