"""Vertical Pod Autoscaler tick function.

The pod count stays fixed; what changes is each pod's resource request.
Every tick the recommender observes usage, adds 20% headroom and caps the
result at the configured maximums. A recommendation is only acted on when
it moves CPU or memory by more than 15% from the current request.

In ``Auto`` mode the pods are evicted (``recreating``) for one tick and come
back with the new requests. In ``Off`` mode the recommendation is only
reported.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from kubesim.components.scaling.common import JitterSource, ScalingResult, clamp
from kubesim.config import VPAConfig
from kubesim.core.entity import Pod, PodStatus, count_status
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import ResourceRequests

logger = logging.getLogger(__name__)

VPA_PODS = 2
CPU_MILLIS_PER_TRAFFIC = 10.0
CPU_JITTER_MILLIS = 50.0
BASE_MEMORY_MI = 256.0
MEMORY_MI_PER_TRAFFIC = 4.0
HEADROOM = 1.2
DIVERGENCE = 0.15


def observed_usage(traffic: float, pod_count: int, rng: JitterSource) -> tuple[float, float]:
    """Per-pod CPU millicores and memory MiB used at ``traffic``."""
    share = traffic * VPA_PODS / max(pod_count, 1)
    cpu = share * CPU_MILLIS_PER_TRAFFIC + rng.random() * CPU_JITTER_MILLIS
    memory = BASE_MEMORY_MI + share * MEMORY_MI_PER_TRAFFIC
    return cpu, memory


def vpa_recommend(used_cpu: float, used_memory: float, config: VPAConfig) -> ResourceRequests:
    return ResourceRequests(
        cpu_millis=min(config.max_cpu_millis, round(used_cpu * HEADROOM)),
        memory_mi=min(config.max_memory_mi, round(used_memory * HEADROOM)),
    )


def diverges(recommended: ResourceRequests, current: ResourceRequests) -> bool:
    """True when either resource moves by more than 15% of ``current``."""
    return (
        abs(recommended.cpu_millis - current.cpu_millis) > current.cpu_millis * DIVERGENCE
        or abs(recommended.memory_mi - current.memory_mi) > current.memory_mi * DIVERGENCE
    )


def vpa_tick(
    pods: Sequence[Pod],
    traffic: float,
    requests: ResourceRequests,
    config: VPAConfig,
    rng: JitterSource,
    previous: ResourceRequests | None = None,
) -> ScalingResult:
    """Advance the vertical autoscaler by one tick.

    Args:
        pods: Pods at the end of the previous tick.
        traffic: Request rate for this tick.
        requests: Per-pod requests currently in force.
        config: Recommender parameters.
        rng: Jitter source.
        previous: The last recommendation, used to avoid repeating an
            unapplied one every tick.
    """
    evicting = count_status(pods, PodStatus.RECREATING) > 0
    alive = [
        p.with_status(PodStatus.RUNNING) if p.status is PodStatus.RECREATING else p
        for p in pods
        if p.status is not PodStatus.TERMINATING
    ]

    used_cpu, used_memory = observed_usage(traffic, len(alive), rng)
    cpu_percent = round(clamp(used_cpu / max(requests.cpu_millis, 1) * 100, 0, 100))
    memory_percent = used_memory / max(requests.memory_mi, 1) * 100
    alive = [
        p.with_status(PodStatus.RUNNING, cpu=cpu_percent, memory=round(used_memory)) if p.is_running else p
        for p in alive
    ]

    recommendation = vpa_recommend(used_cpu, used_memory, config)
    logs: list[LogLine] = []
    if evicting or not diverges(recommendation, requests):
        return ScalingResult(
            pods=tuple(alive), avg_cpu=cpu_percent, logs=logs, requests=requests, recommendation=previous
        )

    summary = (
        f"VPA: Recommending {recommendation.cpu_millis}m CPU, {recommendation.memory_mi}Mi memory "
        f"(current: {requests.cpu_millis}m, {requests.memory_mi}Mi; "
        f"usage {cpu_percent}% CPU, {round(memory_percent)}% memory)"
    )

    if config.update_mode == "Off":
        if previous is None or diverges(recommendation, previous):
            logs.append(LogLine(summary))
            logs.append(LogLine("VPA: updateMode=Off, recommendation not applied", LogType.WARNING))
        return ScalingResult(
            pods=tuple(alive), avg_cpu=cpu_percent, logs=logs, requests=requests, recommendation=recommendation
        )

    evicted = [p.with_status(PodStatus.RECREATING, cpu=0) if p.is_running else p for p in alive]
    logs.append(LogLine(summary))
    logs.append(
        LogLine(
            f"VPA: Evicting {len(evicted)} pod(s) to apply "
            f"{recommendation.cpu_millis}m CPU, {recommendation.memory_mi}Mi memory",
            LogType.ACTION,
        )
    )
    logger.info(
        "VPA apply: cpu %dm -> %dm, memory %dMi -> %dMi",
        requests.cpu_millis,
        recommendation.cpu_millis,
        requests.memory_mi,
        recommendation.memory_mi,
    )
    return ScalingResult(
        pods=tuple(evicted),
        avg_cpu=cpu_percent,
        logs=logs,
        requests=recommendation,
        recommendation=recommendation,
    )
