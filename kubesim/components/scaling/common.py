"""Shared types and helpers for the autoscaler tick functions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Protocol

from kubesim.core.entity import Node, Pod, PodStatus
from kubesim.core.log import LogLine
from kubesim.core.state import ResourceRequests

_LABEL_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class JitterSource(Protocol):
    """Anything with ``random.Random.random`` semantics."""

    def random(self) -> float: ...


@dataclass(frozen=True)
class ScalingResult:
    """Output of one autoscaler tick.

    Attributes:
        pods: Next live pod collection.
        avg_cpu: Average CPU utilization percent this tick.
        scale_down_timer: Consecutive under-target ticks (or polls).
        cooldown_remaining: Ticks before scale-down is allowed again.
        logs: Narration lines produced this tick.
        nodes: Next node collection (cluster autoscaler only).
        requests: Resource requests after this tick (vertical autoscaler only).
        recommendation: Recommendation emitted this tick, if any.
    """

    pods: tuple[Pod, ...]
    avg_cpu: float
    scale_down_timer: int = 0
    cooldown_remaining: int = 0
    logs: list[LogLine] = field(default_factory=list)
    nodes: tuple[Node, ...] | None = None
    requests: ResourceRequests | None = None
    recommendation: ResourceRequests | None = None


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]``; ``low`` wins if the bounds cross."""
    return max(low, min(high, value))


def ceil_div(numerator: float, denominator: float) -> int:
    """``ceil(numerator / denominator)`` with a zero denominator treated as 1."""
    return math.ceil(numerator / (denominator if denominator > 0 else 1))


def random_suffix(rng: JitterSource, length: int = 5) -> str:
    return "".join(_LABEL_ALPHABET[int(rng.random() * len(_LABEL_ALPHABET))] for _ in range(length))


def new_pods(
    count: int,
    tick: int,
    rng: JitterSource,
    prefix: str = "pod",
    status: PodStatus = PodStatus.PENDING,
    cpu: float = 0.0,
    memory: float = 0.0,
) -> list[Pod]:
    """Create ``count`` pods whose ids are unique within a run."""
    return [
        Pod(
            id=f"{prefix}-{tick}-{i}",
            label=f"{prefix}-{random_suffix(rng)}",
            status=status,
            cpu=cpu,
            memory=memory,
        )
        for i in range(max(0, count))
    ]


def settle(pods, promoted_cpu: float = 0.0) -> tuple[list[Pod], int]:
    """Finish transitions started on the previous tick.

    Terminating pods leave the live set, pending and recreating pods start
    running.

    Returns:
        The surviving pods and how many were promoted.
    """
    result = []
    promoted = 0
    for pod in pods:
        if pod.status is PodStatus.TERMINATING:
            continue
        if pod.status in (PodStatus.PENDING, PodStatus.RECREATING):
            pod = pod.with_status(PodStatus.RUNNING, cpu=round(promoted_cpu))
            promoted += 1
        result.append(pod)
    return result, promoted
