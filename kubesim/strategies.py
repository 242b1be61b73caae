"""Simulation strategies: one class per simulation kind.

A strategy knows how to build the initial state for its kind and how to
advance a state by one tick. It holds no mutable state of its own; the
:class:`~kubesim.simulation.Simulation` driver owns the current state and
hands it back in on every tick.

Scaling strategies share a per-tick pipeline (event expiry, traffic,
crashes, queue) and differ only in the autoscaler they run. Deployment
strategies differ only in their tick function.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import ClassVar, Protocol

from kubesim.components.deployment.ab_testing import ab_testing_tick, variant_servers
from kubesim.components.deployment.blue_green import blue_green_tick
from kubesim.components.deployment.canary import canary_tick
from kubesim.components.deployment.common import DeploymentResult, make_servers
from kubesim.components.deployment.recreate import recreate_tick
from kubesim.components.deployment.rolling import rolling_tick
from kubesim.components.deployment.shadow import shadow_tick
from kubesim.components.scaling.cluster import cluster_tick, initial_cluster
from kubesim.components.scaling.common import JitterSource, ScalingResult, new_pods
from kubesim.components.scaling.hpa import hpa_tick
from kubesim.components.scaling.keda import keda_tick
from kubesim.components.scaling.traffic import crash_victim, next_queue_depth, next_traffic
from kubesim.components.scaling.vpa import VPA_PODS, vpa_tick
from kubesim.config import (
    ABTestingConfig,
    ClusterConfig,
    Config,
    EngineSettings,
    SimulationKind,
    VPAConfig,
    replicas_of,
)
from kubesim.core.entity import Pod, PodStatus, Server, ServerStatus, Version, running
from kubesim.core.event import active_events
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, ResourceRequests, ScalingSimState, SimState
from kubesim.instrumentation.metrics import (
    calculate_deployment_metrics,
    calculate_scaling_metrics,
    initial_metrics,
)

logger = logging.getLogger(__name__)

HEALTHY_CPU_LIMIT = 95.0
HEALTHY_ERROR_LIMIT = 5.0
INITIAL_CPU = 25.0
INITIAL_CPU_SPREAD = 10.0


class SimulationStrategy(Protocol):
    """Builds and advances the state of one simulation kind."""

    kind: SimulationKind
    log_prefix: str

    def initial_state(self, config: Config, settings: EngineSettings, rng: JitterSource) -> SimState: ...

    def advance(
        self, state: SimState, config: Config, settings: EngineSettings, rng: JitterSource
    ) -> tuple[SimState, list[LogLine]]: ...


# ----------------------------------------------------------------------
# Scaling
# ----------------------------------------------------------------------


class ScalingStrategy:
    """Shared pipeline for the autoscaling kinds.

    Subclasses provide the initial fleet, the gauge maximum and the
    autoscaler itself (:meth:`scale`).
    """

    kind: ClassVar[SimulationKind]
    log_prefix: ClassVar[str] = "sim"

    def initial_pods(
        self, config: Config, settings: EngineSettings, rng: JitterSource
    ) -> tuple[list[Pod], list]:
        raise NotImplementedError

    def max_pods(self, config: Config) -> int:
        return config.max_pods

    def scale(self, state: ScalingSimState, config: Config, rng: JitterSource) -> ScalingResult:
        raise NotImplementedError

    def is_healthy(self, result: ScalingResult, queue_depth: int) -> bool:
        return result.avg_cpu < HEALTHY_CPU_LIMIT and len(running(result.pods)) > 0

    def initial_state(self, config: Config, settings: EngineSettings, rng: JitterSource) -> ScalingSimState:
        pods, nodes = self.initial_pods(config, settings, rng)
        queue = 0 if self.kind is SimulationKind.KEDA else None
        return ScalingSimState(
            tick=0,
            pods=tuple(pods),
            nodes=tuple(nodes),
            traffic=settings.base_traffic,
            metrics=initial_metrics(len(pods), self.max_pods(config), settings.base_traffic, queue),
            requests=self.initial_requests(config),
        )

    def initial_requests(self, config: Config) -> ResourceRequests:
        return ResourceRequests()

    def advance(
        self, state: ScalingSimState, config: Config, settings: EngineSettings, rng: JitterSource
    ) -> tuple[ScalingSimState, list[LogLine]]:
        tick = state.tick + 1
        events = active_events(state.events, tick, settings.event_lookback)
        traffic = next_traffic(state.traffic, settings.base_traffic, events, tick, rng)
        lines: list[LogLine] = []

        pods = state.pods
        victim = crash_victim(pods, events, tick)
        if victim is not None:
            pods = tuple(p for p in pods if p.id != victim.id)
            lines.append(LogLine(f"Pod {victim.label} crashed! Replacement needed.", LogType.ERROR))
            logger.warning("[%s] pod %s crashed at tick %d", self.kind.value, victim.label, tick)

        queue = next_queue_depth(state.queue_depth, pods, events, tick)
        current = replace(state, tick=tick, pods=pods, traffic=traffic, queue_depth=queue, events=events)
        result = self.scale(current, config, rng)
        lines.extend(result.logs)

        healthy_ticks = state.healthy_ticks + (1 if self.is_healthy(result, queue) else 0)
        replicas = sum(1 for p in result.pods if p.status is not PodStatus.TERMINATING)
        history = settings.history_length
        metrics = calculate_scaling_metrics(
            result.pods,
            traffic,
            self.max_pods(config),
            result.avg_cpu,
            queue,
            healthy_ticks,
            tick,
        )
        if self.kind is not SimulationKind.KEDA:
            metrics = replace(metrics, queue_depth=None)

        next_state = replace(
            current,
            pods=result.pods,
            nodes=result.nodes if result.nodes is not None else current.nodes,
            avg_cpu=result.avg_cpu,
            scale_down_timer=result.scale_down_timer,
            cooldown_remaining=result.cooldown_remaining,
            healthy_ticks=healthy_ticks,
            traffic_history=(state.traffic_history + (round(traffic),))[-history:],
            replica_history=(state.replica_history + (replicas,))[-history:],
            metrics=metrics,
            requests=result.requests or current.requests,
            recommendation=result.recommendation,
        )
        return next_state, lines


def _running_pods(count: int, rng: JitterSource, prefix: str = "pod", **kwargs) -> list[Pod]:
    pods = new_pods(max(1, count), 0, rng, prefix=prefix, status=PodStatus.RUNNING, **kwargs)
    return [replace(p, cpu=round(INITIAL_CPU + rng.random() * INITIAL_CPU_SPREAD)) for p in pods]


class HPAStrategy(ScalingStrategy):
    kind = SimulationKind.HPA

    def initial_pods(self, config, settings, rng):
        return _running_pods(config.initial_pods, rng), []

    def scale(self, state, config, rng):
        return hpa_tick(state.pods, state.traffic, config, state.scale_down_timer, rng, state.tick)


class KEDAStrategy(ScalingStrategy):
    kind = SimulationKind.KEDA

    def initial_pods(self, config, settings, rng):
        return _running_pods(config.min_pods, rng, prefix="worker"), []

    def scale(self, state, config, rng):
        return keda_tick(state.pods, state.queue_depth, config, state.scale_down_timer, rng, state.tick)

    def is_healthy(self, result, queue_depth):
        # scaled to zero with nothing to do is healthy
        if not running(result.pods) and queue_depth == 0:
            return True
        return super().is_healthy(result, queue_depth)


class ClusterStrategy(ScalingStrategy):
    kind = SimulationKind.CLUSTER

    def initial_pods(self, config: ClusterConfig, settings, rng):
        return initial_cluster(config, settings.base_traffic, rng)

    def max_pods(self, config: ClusterConfig) -> int:
        return config.max_nodes * config.pods_per_node

    def scale(self, state, config, rng):
        return cluster_tick(state.pods, state.nodes, state.traffic, config, state.cooldown_remaining, rng, state.tick)


class VPAStrategy(ScalingStrategy):
    kind = SimulationKind.VPA

    def initial_pods(self, config: VPAConfig, settings, rng):
        return _running_pods(VPA_PODS, rng, memory=config.initial_memory_mi // 2), []

    def initial_requests(self, config: VPAConfig) -> ResourceRequests:
        return ResourceRequests(cpu_millis=config.initial_cpu_millis, memory_mi=config.initial_memory_mi)

    def max_pods(self, config: VPAConfig) -> int:
        return VPA_PODS

    def scale(self, state, config, rng):
        return vpa_tick(state.pods, state.traffic, state.requests, config, rng, previous=state.recommendation)


# ----------------------------------------------------------------------
# Deployment
# ----------------------------------------------------------------------


class DeploymentStrategy:
    """Shared wrapper around the deployment tick functions."""

    kind: ClassVar[SimulationKind]
    log_prefix: ClassVar[str] = "dep-sim"

    def initial_servers(self, config: Config) -> list[Server]:
        return make_servers(replicas_of(config), "server", Version.V1, ServerStatus.RUNNING)

    def initial_split(self, config: Config) -> tuple[float, float]:
        return 100.0, 0.0

    def compute(self, state: DeploymentSimState, config: Config, rng: JitterSource) -> DeploymentResult:
        raise NotImplementedError

    def initial_state(self, config: Config, settings: EngineSettings, rng: JitterSource) -> DeploymentSimState:
        servers = self.initial_servers(config)
        v1, v2 = self.initial_split(config)
        return DeploymentSimState(
            tick=0,
            servers=tuple(servers),
            v1_traffic=v1,
            v2_traffic=v2,
            metrics=calculate_deployment_metrics(servers, v1, v2, 0.0, 0, 0),
        )

    def advance(
        self, state: DeploymentSimState, config: Config, settings: EngineSettings, rng: JitterSource
    ) -> tuple[DeploymentSimState, list[LogLine]]:
        current = replace(state, tick=state.tick + 1)
        result = self.compute(current, config, rng)
        if result.phase is not state.phase:
            logger.debug("[%s] phase %s -> %s at tick %d", self.kind.value, state.phase.value, result.phase.value, current.tick)

        healthy = result.error_rate < HEALTHY_ERROR_LIMIT and len(running(result.servers)) > 0
        healthy_ticks = state.healthy_ticks + (1 if healthy else 0)
        metrics = calculate_deployment_metrics(
            result.servers, result.v1_traffic, result.v2_traffic, result.error_rate, healthy_ticks, current.tick
        )
        next_state = replace(
            current,
            servers=result.servers,
            v1_traffic=result.v1_traffic,
            v2_traffic=result.v2_traffic,
            mirror_traffic=result.mirror_traffic,
            error_rate=result.error_rate,
            phase=result.phase,
            current_stage=result.current_stage,
            healthy_ticks=healthy_ticks,
            metrics=metrics,
        )
        return next_state, result.logs


class BlueGreenStrategy(DeploymentStrategy):
    kind = SimulationKind.BLUE_GREEN

    def compute(self, state, config, rng):
        return blue_green_tick(state, config)


class CanaryStrategy(DeploymentStrategy):
    kind = SimulationKind.CANARY

    def compute(self, state, config, rng):
        return canary_tick(state, config)


class RollingStrategy(DeploymentStrategy):
    kind = SimulationKind.ROLLING

    def compute(self, state, config, rng):
        return rolling_tick(state, config)


class RecreateStrategy(DeploymentStrategy):
    kind = SimulationKind.RECREATE

    def compute(self, state, config, rng):
        return recreate_tick(state, config)


class ABTestingStrategy(DeploymentStrategy):
    kind = SimulationKind.AB_TESTING

    def initial_servers(self, config: ABTestingConfig) -> list[Server]:
        return variant_servers(config)

    def initial_split(self, config: ABTestingConfig) -> tuple[float, float]:
        return float(config.v1_percent), float(config.v2_percent)

    def compute(self, state, config, rng):
        return ab_testing_tick(state, config)


class ShadowStrategy(DeploymentStrategy):
    kind = SimulationKind.SHADOW

    def compute(self, state, config, rng):
        return shadow_tick(state, config, rng)


STRATEGIES: dict[SimulationKind, type] = {
    cls.kind: cls
    for cls in (
        HPAStrategy,
        VPAStrategy,
        ClusterStrategy,
        KEDAStrategy,
        BlueGreenStrategy,
        CanaryStrategy,
        RollingStrategy,
        RecreateStrategy,
        ABTestingStrategy,
        ShadowStrategy,
    )
}


def strategy_for(kind: SimulationKind | str) -> SimulationStrategy:
    """Instantiate the strategy for ``kind``.

    Raises:
        ValueError: If ``kind`` is not a known simulation kind.
    """
    return STRATEGIES[SimulationKind.parse(kind)]()