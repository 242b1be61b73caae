"""Event-driven (KEDA-style) autoscaler tick function.

The scaler polls the queue on the first tick and every ``polling_interval``
ticks after that. Between polls it does nothing but finish pod transitions
started earlier. Scale-to-zero is allowed when ``min_pods`` is 0 and the
queue is empty.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from kubesim.components.scaling.common import (
    JitterSource,
    ScalingResult,
    ceil_div,
    clamp,
    new_pods,
    settle,
)
from kubesim.config import KEDAConfig
from kubesim.core.entity import Pod, PodStatus, running
from kubesim.core.log import LogLine, LogType

logger = logging.getLogger(__name__)

MESSAGES_PER_CPU_UNIT = 5
CPU_SCALE = 60.0
CPU_JITTER = 10.0
MAX_CPU = 95.0
WORKER_CPU = 30.0


def keda_desired_replicas(queue_depth: int, config: KEDAConfig) -> int:
    """Replicas needed to work through ``queue_depth`` messages."""
    if queue_depth == 0 and config.min_pods == 0:
        return 0
    desired = ceil_div(queue_depth, config.queue_threshold)
    return int(clamp(desired, config.min_pods, config.max_pods))


def is_poll_tick(tick: int, config: KEDAConfig) -> bool:
    return tick == 1 or tick % max(1, config.polling_interval) == 0


def keda_tick(
    pods: Sequence[Pod],
    queue_depth: int,
    config: KEDAConfig,
    scale_down_timer: int,
    rng: JitterSource,
    tick: int,
) -> ScalingResult:
    """Advance the event-driven autoscaler by one tick.

    Args:
        pods: Pods at the end of the previous tick.
        queue_depth: Messages waiting this tick.
        config: Scaler parameters.
        scale_down_timer: Consecutive polls that asked for fewer replicas.
        rng: Jitter source.
        tick: Current tick.
    """
    alive, _ = settle(pods, promoted_cpu=WORKER_CPU)
    timer = scale_down_timer
    logs: list[LogLine] = []

    if is_poll_tick(tick, config):
        desired = keda_desired_replicas(queue_depth, config)
        current = len(alive)
        if desired > current:
            alive += new_pods(desired - current, tick, rng, prefix="worker")
            timer = 0
            logs.append(
                LogLine(
                    f"KEDA: ceil({queue_depth} / {config.queue_threshold}) = {desired} pods needed. "
                    f"Scaling {current} -> {desired}",
                    LogType.ACTION,
                )
            )
            logger.info("KEDA scale up: %d -> %d (queue %d)", current, desired, queue_depth)
        elif desired < current:
            timer += 1
            if timer >= config.cooldown_period:
                excess = current - desired
                for i in range(len(alive) - 1, -1, -1):
                    if excess == 0:
                        break
                    if alive[i].is_running:
                        alive[i] = alive[i].with_status(PodStatus.TERMINATING)
                        excess -= 1
                timer = 0
                message = (
                    "KEDA: Queue empty. Scaling to zero."
                    if desired == 0
                    else f"KEDA: ceil({queue_depth} / {config.queue_threshold}) = {desired} pods needed. "
                    f"Scaling {current} -> {desired}"
                )
                logs.append(LogLine(message, LogType.ACTION))
                logger.info("KEDA scale down: %d -> %d", current, desired)
            else:
                logs.append(LogLine(f"KEDA: Cooldown {timer}/{config.cooldown_period} before scale-down"))
        else:
            timer = 0

    run_count = len(running(alive)) or 1
    avg_cpu = min(MAX_CPU, round(queue_depth / (run_count * MESSAGES_PER_CPU_UNIT) * CPU_SCALE + rng.random() * CPU_JITTER))
    alive = [p.with_status(PodStatus.RUNNING, cpu=avg_cpu) if p.is_running else p for p in alive]

    return ScalingResult(pods=tuple(alive), avg_cpu=avg_cpu, scale_down_timer=timer, logs=logs)
