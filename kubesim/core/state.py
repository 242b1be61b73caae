"""Immutable simulation state snapshots.

A state is replaced once per tick by the strategy's pure transition and
read by callers through ``Simulation.get_state()``. Holding on to an old
snapshot is always safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from kubesim.core.entity import Node, Pod, Server
from kubesim.core.event import SimEvent
from kubesim.core.log import LogEntry
from kubesim.instrumentation.metrics import LiveMetrics


class Phase(Enum):
    """Position of a deployment run in its state machine."""

    IDLE = "idle"
    DEPLOYING = "deploying"
    MONITORING = "monitoring"
    ROLLING_BACK = "rolling-back"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.ROLLING_BACK, Phase.COMPLETE)


@dataclass(frozen=True)
class ResourceRequests:
    """Per-pod resource requests managed by the vertical autoscaler."""

    cpu_millis: int = 500
    memory_mi: int = 512


@dataclass(frozen=True)
class ScalingSimState:
    """State of an autoscaling simulation.

    Attributes:
        tick: Ticks elapsed since construction or reset.
        pods: Live pods.
        nodes: Cluster nodes; empty except for the cluster autoscaler.
        traffic: Current request rate.
        traffic_history: Recent traffic samples, oldest first.
        replica_history: Recent non-terminating pod counts, oldest first.
        avg_cpu: Average CPU utilization percent this tick.
        queue_depth: Pending messages, for event-driven scaling.
        metrics: Derived metrics.
        logs: Newest narration entries, oldest first.
        events: Events still within the lookback window.
        cooldown_remaining: Ticks before scale-down is allowed again.
        scale_down_timer: Consecutive under-target ticks (or polls).
        healthy_ticks: Ticks counted as healthy so far.
        next_log_id: Next narration log id for this run.
        requests: Current per-pod resource requests (vertical autoscaler).
        recommendation: Latest vertical autoscaler recommendation, if any.
    """

    tick: int
    pods: tuple[Pod, ...]
    metrics: LiveMetrics
    traffic: float = 50.0
    nodes: tuple[Node, ...] = ()
    traffic_history: tuple[float, ...] = ()
    replica_history: tuple[int, ...] = ()
    avg_cpu: float = 25.0
    queue_depth: int = 0
    logs: tuple[LogEntry, ...] = ()
    events: tuple[SimEvent, ...] = ()
    cooldown_remaining: int = 0
    scale_down_timer: int = 0
    healthy_ticks: int = 0
    next_log_id: int = 1
    requests: ResourceRequests = field(default_factory=ResourceRequests)
    recommendation: ResourceRequests | None = None

    @property
    def entities(self) -> tuple[Pod, ...]:
        return self.pods

    @property
    def phase(self) -> None:
        return None


@dataclass(frozen=True)
class DeploymentSimState:
    """State of a deployment simulation.

    Attributes:
        tick: Ticks elapsed since construction or reset.
        servers: Live servers, shadow servers included.
        v1_traffic: Percent of production traffic served by v1.
        v2_traffic: Percent of production traffic served by v2.
        mirror_traffic: Percent of production traffic copied to shadows.
        error_rate: Percent of requests failing.
        metrics: Derived metrics.
        logs: Newest narration entries, oldest first.
        events: Every event triggered since construction or reset.
        phase: Deployment run phase.
        current_stage: Canary stage index, -1 outside a canary rollout.
        healthy_ticks: Ticks counted as healthy so far.
        next_log_id: Next narration log id for this run.
    """

    tick: int
    servers: tuple[Server, ...]
    metrics: LiveMetrics
    v1_traffic: float = 100.0
    v2_traffic: float = 0.0
    mirror_traffic: float = 0.0
    error_rate: float = 0.0
    logs: tuple[LogEntry, ...] = ()
    events: tuple[SimEvent, ...] = ()
    phase: Phase = Phase.IDLE
    current_stage: int = -1
    healthy_ticks: int = 0
    next_log_id: int = 1

    @property
    def entities(self) -> tuple[Server, ...]:
        return self.servers


SimState = ScalingSimState | DeploymentSimState
