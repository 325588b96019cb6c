"""
Monitoring Module for PNRGOV Reconciliation

Prometheus metrics describing comparison runs.

Usage:
    from src.monitoring import ReconciliationMetrics
    from src.reconciliation import PnrgovComparator

    metrics = ReconciliationMetrics()
    comparator = PnrgovComparator(metrics=metrics)
    comparator.compare("/data/flights/EK0160")
    print(metrics.export_text())
"""

from src.monitoring.metrics import ReconciliationMetrics

__all__ = [
    "ReconciliationMetrics",
]

__version__ = "1.0.0"
