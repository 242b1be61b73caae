"""Horizontal Pod Autoscaler tick function.

Models the Kubernetes HPA control loop one tick at a time:

- desired = clamp(ceil(current * utilization / target), min, max)
- scale-up is immediate but limited to +50% of the current replicas per tick
- new pods are ``pending`` for one tick before they run
- scale-down waits for ``scale_down_delay`` consecutive under-target ticks,
  then removes one pod (``terminating`` for one tick)

Example:
    result = hpa_tick(pods, traffic=200, config=HPAConfig(), scale_down_timer=0, rng=random.Random(1))
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from kubesim.components.scaling.common import (
    JitterSource,
    ScalingResult,
    clamp,
    new_pods,
    settle,
)
from kubesim.config import HPAConfig
from kubesim.core.entity import Pod, PodStatus, running
from kubesim.core.log import LogLine, LogType

logger = logging.getLogger(__name__)

CPU_PER_TRAFFIC = 0.8
CPU_JITTER = 5.0
MAX_CPU = 95.0
POD_CPU_SPREAD = 10.0
SCALE_UP_LIMIT = 0.5
COOLDOWN_LOG_EVERY = 3


def hpa_desired_replicas(current_replicas: int, avg_cpu: float, config: HPAConfig) -> int:
    """``clamp(ceil(current * avg_cpu / cpu_target), min_pods, max_pods)``."""
    if config.cpu_target <= 0:
        return int(clamp(current_replicas, config.min_pods, config.max_pods))
    desired = math.ceil(current_replicas * avg_cpu / config.cpu_target)
    return int(clamp(desired, config.min_pods, config.max_pods))


def average_utilization(traffic: float, running_count: int, rng: JitterSource) -> float:
    """CPU percent when ``traffic`` is spread over ``running_count`` pods."""
    per_pod = traffic / max(running_count, 1)
    return round(min(MAX_CPU, per_pod * CPU_PER_TRAFFIC + rng.random() * CPU_JITTER))


def scale_up_limit(current_replicas: int) -> int:
    """Most pods one tick may add."""
    return max(1, math.ceil(current_replicas * SCALE_UP_LIMIT))


def hpa_tick(
    pods: Sequence[Pod],
    traffic: float,
    config: HPAConfig,
    scale_down_timer: int,
    rng: JitterSource,
    tick: int = 0,
) -> ScalingResult:
    """Advance the HPA by one tick.

    Args:
        pods: Pods at the end of the previous tick.
        traffic: Request rate for this tick.
        config: HPA parameters.
        scale_down_timer: Consecutive under-target ticks so far.
        rng: Jitter source.
        tick: Current tick, used for pod ids and log pacing.
    """
    alive, _ = settle(pods)
    running_count = len(running(alive))
    avg_cpu = average_utilization(traffic, running_count, rng)

    alive = [
        p.with_status(PodStatus.RUNNING, cpu=round(clamp(avg_cpu + (rng.random() - 0.5) * POD_CPU_SPREAD, 0, 100)))
        if p.is_running
        else p
        for p in alive
    ]

    current = len(alive)
    desired = hpa_desired_replicas(current, avg_cpu, config)
    logs: list[LogLine] = []

    if desired > current:
        to_add = min(desired - current, scale_up_limit(current))
        added = new_pods(to_add, tick, rng)
        logs.append(
            LogLine(
                f"HPA: ceil({current} x {avg_cpu:g}/{config.cpu_target:g}) = {desired}. "
                f"Scaling {current} -> {current + to_add}",
                LogType.ACTION,
            )
        )
        logger.info("HPA scale up: %d -> %d (desired %d, cpu %g%%)", current, current + to_add, desired, avg_cpu)
        return ScalingResult(pods=tuple(alive + added), avg_cpu=avg_cpu, scale_down_timer=0, logs=logs)

    if desired < current:
        timer = scale_down_timer + 1
        if timer >= config.scale_down_delay:
            marked = list(alive)
            for i in range(len(marked) - 1, -1, -1):
                if marked[i].is_running and current - 1 >= config.min_pods:
                    marked[i] = marked[i].with_status(PodStatus.TERMINATING)
                    logs.append(
                        LogLine(
                            f"HPA: CPU {avg_cpu:g}% < target {config.cpu_target:g}%. "
                            f"Scale-down: {current} -> {current - 1}",
                            LogType.ACTION,
                        )
                    )
                    logger.info("HPA scale down: %d -> %d", current, current - 1)
                    break
            return ScalingResult(pods=tuple(marked), avg_cpu=avg_cpu, scale_down_timer=0, logs=logs)

        if tick % COOLDOWN_LOG_EVERY == 0:
            logs.append(
                LogLine(
                    f"HPA: CPU {avg_cpu:g}% below target. "
                    f"Scale-down cooldown: {timer}/{config.scale_down_delay}"
                )
            )
        return ScalingResult(pods=tuple(alive), avg_cpu=avg_cpu, scale_down_timer=timer, logs=logs)

    return ScalingResult(pods=tuple(alive), avg_cpu=avg_cpu, scale_down_timer=0, logs=logs)
