"""Derived metrics shown alongside a running simulation.

Pure functions of entity statuses, traffic and two running counters
(``healthy_ticks`` and ``total_ticks``). Latency grows superlinearly with the
load carried by each running entity, so overload shows up as a sharp latency
climb rather than a gentle slope.

Zero running entities are counted as one in every denominator; the metrics
never contain NaN or infinity.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from kubesim.core.entity import Pod, PodStatus, Server, count_status, running

COST_PER_POD_PER_HOUR = 0.05
BASE_LATENCY_MS = 12.0
LATENCY_LOAD_DIVISOR = 80.0
SCALING_LATENCY_EXPONENT = 1.5
DEPLOYMENT_LATENCY_EXPONENT = 1.2
MAX_LATENCY_MS = 5000.0
OVERLOAD_CPU_PERCENT = 90.0
PENDING_PENALTY = 0.5
SERVER_TRAFFIC_CAPACITY = 50.0


@dataclass(frozen=True)
class LiveMetrics:
    """A snapshot of derived metrics.

    Attributes:
        pod_count: Running entities (at least 1).
        max_pods: Upper bound the UI scales gauges against.
        cpu_percent: Average CPU utilization, 0-100.
        cost_per_hour: Dollar cost of the running entities.
        availability: Percent of healthy ticks, 0-100.
        latency_ms: Modelled request latency.
        traffic: Current request rate.
        queue_depth: Queue length, for event-driven scaling.
    """

    pod_count: int
    max_pods: int
    cpu_percent: float
    cost_per_hour: float
    availability: float
    latency_ms: float
    traffic: float
    queue_depth: int | None = None


def latency_ms(load_per_entity: float, exponent: float) -> float:
    """``base * (1 + (load/divisor) ** exponent)``, capped."""
    load = max(0.0, load_per_entity)
    value = BASE_LATENCY_MS * (1 + (load / LATENCY_LOAD_DIVISOR) ** exponent)
    return min(MAX_LATENCY_MS, round(value))


def cost_per_hour(count: int) -> float:
    return round(count * COST_PER_POD_PER_HOUR, 2)


def initial_metrics(count: int, max_pods: int, traffic: float, queue_depth: int | None = None) -> LiveMetrics:
    """Metrics for a freshly built state, before any tick."""
    return LiveMetrics(
        pod_count=count,
        max_pods=max_pods,
        cpu_percent=25,
        cost_per_hour=cost_per_hour(count),
        availability=100.0,
        latency_ms=BASE_LATENCY_MS,
        traffic=round(traffic),
        queue_depth=queue_depth,
    )


def calculate_scaling_metrics(
    pods: Sequence[Pod],
    traffic: float,
    max_pods: int,
    avg_cpu: float,
    queue_depth: int,
    healthy_ticks: int,
    total_ticks: int,
) -> LiveMetrics:
    """Metrics for an autoscaling simulation.

    Availability is the share of healthy ticks, reduced by one tick when the
    pods are overloaded (CPU above 90%) and by half a tick per pending pod.
    """
    pod_count = len(running(pods)) or 1
    pending = count_status(pods, PodStatus.PENDING)
    overloaded = 1 if avg_cpu > OVERLOAD_CPU_PERCENT else 0

    if total_ticks == 0:
        availability = 100.0
    else:
        raw = (healthy_ticks - overloaded - pending * PENDING_PENALTY) / max(total_ticks, 1) * 100
        availability = max(0.0, min(100.0, raw))

    return LiveMetrics(
        pod_count=pod_count,
        max_pods=max_pods,
        cpu_percent=min(100, avg_cpu),
        cost_per_hour=cost_per_hour(pod_count),
        availability=round(availability, 1),
        latency_ms=latency_ms(traffic / pod_count, SCALING_LATENCY_EXPONENT),
        traffic=round(traffic),
        queue_depth=queue_depth,
    )


def calculate_deployment_metrics(
    servers: Sequence[Server],
    v1_traffic: float,
    v2_traffic: float,
    error_rate: float,
    healthy_ticks: int,
    total_ticks: int,
) -> LiveMetrics:
    """Metrics for a deployment simulation.

    Shadow servers count toward cost but never toward served traffic.
    Availability is the share of healthy ticks minus the current error rate.
    """
    server_count = len(running(servers)) or 1
    total_traffic = v1_traffic + v2_traffic

    if total_ticks == 0:
        availability = 100.0
    else:
        raw = healthy_ticks / max(total_ticks, 1) * 100 - error_rate
        availability = max(0.0, min(100.0, raw))

    return LiveMetrics(
        pod_count=server_count,
        max_pods=len(servers),
        cpu_percent=min(100, round(total_traffic / (server_count * SERVER_TRAFFIC_CAPACITY) * 100)),
        cost_per_hour=cost_per_hour(server_count),
        availability=round(availability, 1),
        latency_ms=latency_ms(total_traffic / server_count, DEPLOYMENT_LATENCY_EXPONENT),
        traffic=round(total_traffic),
    )
