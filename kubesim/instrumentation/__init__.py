"""Metrics, traces and charts."""

from kubesim.instrumentation.metrics import (
    LiveMetrics,
    calculate_deployment_metrics,
    calculate_scaling_metrics,
)
from kubesim.instrumentation.plot import plot_history
from kubesim.instrumentation.trace import history_frame, record

__all__ = [
    "LiveMetrics",
    "calculate_deployment_metrics",
    "calculate_scaling_metrics",
    "history_frame",
    "plot_history",
    "record",
]
