"""Cluster autoscaler tick function.

The workload runs one pod per ``TRAFFIC_PER_POD`` units of traffic. Pods are
packed onto ready nodes; pods that do not fit stay ``pending``
(unschedulable). Pending pods make the autoscaler add nodes, which spend
``provisioning_time`` ticks provisioning before they accept pods. When the
ready nodes are mostly idle the autoscaler drains one node per tick, but
only if the remaining nodes can host every pod.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from kubesim.components.scaling.common import (
    JitterSource,
    ScalingResult,
    ceil_div,
    new_pods,
    random_suffix,
    settle,
)
from kubesim.config import ClusterConfig
from kubesim.core.entity import Node, NodeStatus, Pod, PodStatus, count_status, running
from kubesim.core.log import LogLine, LogType

logger = logging.getLogger(__name__)

TRAFFIC_PER_POD = 8.0
TARGET_POD_CPU = 70.0
CPU_JITTER = 5.0
MAX_CPU = 95.0
SCALE_DOWN_DELAY_AFTER_ADD = 10


def workload_pods(traffic: float) -> int:
    """Pods the workload wants for ``traffic``."""
    return max(1, ceil_div(traffic, TRAFFIC_PER_POD))


def average_node_utilization(nodes: Sequence[Node]) -> float:
    ready = [n for n in nodes if n.is_ready]
    return sum(n.utilization for n in ready) / (len(ready) or 1)


def cluster_desired_nodes(
    nodes: Sequence[Node],
    pending_pods: int,
    config: ClusterConfig,
    scheduled_pods: int = 0,
    cooldown_remaining: int = 0,
) -> tuple[int, str | None]:
    """Decide how many nodes the cluster should have.

    Args:
        nodes: Current nodes; draining nodes are not counted.
        pending_pods: Pods that could not be scheduled.
        config: Autoscaler parameters.
        scheduled_pods: Pods currently placed on ready nodes.
        cooldown_remaining: Ticks before scale-down is allowed.

    Returns:
        The desired node count and an explanation, or None when unchanged.
    """
    active = [n for n in nodes if n.status is not NodeStatus.DRAINING]
    current = len(active)
    per_node = max(1, config.pods_per_node)

    if pending_pods > 0:
        incoming = sum(n.capacity for n in active if n.status is NodeStatus.PROVISIONING)
        uncovered = pending_pods - incoming
        if uncovered <= 0:
            return current, None
        desired = min(config.max_nodes, current + ceil_div(uncovered, per_node))
        if desired <= current:
            return current, f"Cluster Autoscaler: {pending_pods} pending pods but already at max {config.max_nodes} nodes"
        return desired, (
            f"Cluster Autoscaler: {pending_pods} pending pods. Adding {desired - current} node(s)"
        )

    if cooldown_remaining > 0 or count_status(active, NodeStatus.PROVISIONING):
        return current, None

    avg_util = average_node_utilization(active)
    ready = [n for n in active if n.is_ready]
    fits = (len(ready) - 1) * per_node >= scheduled_pods
    if avg_util < config.scale_down_threshold and current > config.min_nodes and fits:
        return max(config.min_nodes, current - 1), (
            f"Cluster Autoscaler: Avg utilization {round(avg_util)}% < "
            f"{config.scale_down_threshold:g}%. Removing 1 node"
        )
    return current, None


def new_nodes(count: int, tick: int, config: ClusterConfig, rng: JitterSource) -> list[Node]:
    status = NodeStatus.PROVISIONING if config.provisioning_time > 0 else NodeStatus.READY
    return [
        Node(
            id=f"node-{tick}-{i}",
            label=f"worker-{random_suffix(rng)}",
            status=status,
            capacity=max(1, config.pods_per_node),
            provisioning_remaining=max(0, config.provisioning_time),
        )
        for i in range(count)
    ]


def schedule(pods: Sequence[Pod], nodes: Sequence[Node]) -> tuple[list[Pod], list[Node]]:
    """Place pods on ready nodes.

    Pods stay on the ready node they already occupy; the rest are packed in
    order. Terminating pods are not placed. Pods that fit are ``running``,
    the others ``pending``.
    """
    slots = {n.id: [] for n in nodes if n.is_ready}
    capacity = {n.id: n.capacity for n in nodes}
    previous = {pod_id: n.id for n in nodes for pod_id in n.pods}

    placed: dict[str, str] = {}
    candidates = [p for p in pods if p.status is not PodStatus.TERMINATING]
    for pod in candidates:
        node_id = previous.get(pod.id)
        if node_id in slots and len(slots[node_id]) < capacity[node_id]:
            slots[node_id].append(pod.id)
            placed[pod.id] = node_id
    for pod in candidates:
        if pod.id in placed:
            continue
        for node_id, assigned in slots.items():
            if len(assigned) < capacity[node_id]:
                assigned.append(pod.id)
                placed[pod.id] = node_id
                break

    scheduled_pods = []
    for pod in pods:
        if pod.status is PodStatus.TERMINATING:
            scheduled_pods.append(pod)
        elif pod.id in placed:
            scheduled_pods.append(pod if pod.is_running else pod.with_status(PodStatus.RUNNING))
        else:
            scheduled_pods.append(pod.with_status(PodStatus.PENDING, cpu=0))
    scheduled_nodes = [
        replace(n, pods=tuple(slots[n.id])) if n.id in slots else n for n in nodes
    ]
    return scheduled_pods, scheduled_nodes


def initial_cluster(config: ClusterConfig, traffic: float, rng: JitterSource) -> tuple[list[Pod], list[Node]]:
    """Ready nodes at ``min_nodes`` with the baseline workload scheduled."""
    nodes = new_nodes(max(1, config.min_nodes), 0, config, rng)
    nodes = [replace(n, status=NodeStatus.READY, provisioning_remaining=0) for n in nodes]
    pods = new_pods(workload_pods(traffic), 0, rng, prefix="app", status=PodStatus.RUNNING, cpu=25)
    return schedule(pods, nodes)


def _advance_nodes(nodes: Sequence[Node]) -> tuple[list[Node], list[LogLine]]:
    result = []
    logs = []
    for node in nodes:
        if node.status is NodeStatus.DRAINING:
            logs.append(LogLine(f"Node {node.label} drained and removed"))
            continue
        if node.status is NodeStatus.PROVISIONING:
            remaining = node.provisioning_remaining - 1
            if remaining <= 0:
                node = replace(node, status=NodeStatus.READY, provisioning_remaining=0)
                logs.append(LogLine(f"Node {node.label} is Ready", LogType.SUCCESS))
            else:
                node = replace(node, provisioning_remaining=remaining)
        result.append(node)
    return result, logs


def cluster_tick(
    pods: Sequence[Pod],
    nodes: Sequence[Node],
    traffic: float,
    config: ClusterConfig,
    cooldown_remaining: int,
    rng: JitterSource,
    tick: int,
) -> ScalingResult:
    """Advance the cluster autoscaler by one tick.

    Args:
        pods: Pods at the end of the previous tick.
        nodes: Nodes at the end of the previous tick.
        traffic: Request rate for this tick.
        config: Autoscaler parameters.
        cooldown_remaining: Ticks before scale-down is allowed.
        rng: Jitter source.
        tick: Current tick.
    """
    cooldown = max(0, cooldown_remaining - 1)
    live_nodes, logs = _advance_nodes(nodes)

    alive, _ = settle(pods)
    demand = workload_pods(traffic)
    if len(alive) < demand:
        alive += new_pods(demand - len(alive), tick, rng, prefix="app")
    elif len(alive) > demand:
        excess = len(alive) - demand
        for i in range(len(alive) - 1, -1, -1):
            if excess == 0:
                break
            alive[i] = alive[i].with_status(PodStatus.TERMINATING)
            excess -= 1

    alive, live_nodes = schedule(alive, live_nodes)
    pending = count_status(alive, PodStatus.PENDING)
    scheduled = len(running(alive))

    desired, reason = cluster_desired_nodes(live_nodes, pending, config, scheduled, cooldown)
    current = sum(1 for n in live_nodes if n.status is not NodeStatus.DRAINING)
    if reason:
        logs.append(LogLine(reason, LogType.ACTION if desired != current else LogType.WARNING))

    if desired > current:
        live_nodes += new_nodes(desired - current, tick, config, rng)
        cooldown = SCALE_DOWN_DELAY_AFTER_ADD
        logger.info("Cluster scale up: %d -> %d nodes (%d pending pods)", current, desired, pending)
        if config.provisioning_time <= 0:
            alive, live_nodes = schedule(alive, live_nodes)
    elif desired < current:
        ready = [n for n in live_nodes if n.is_ready]
        victim = min(reversed(ready), key=lambda n: len(n.pods))
        live_nodes = [
            replace(n, status=NodeStatus.DRAINING) if n.id == victim.id else n
            for n in live_nodes
        ]
        logger.info("Cluster scale down: draining %s", victim.label)

    run_count = len(running(alive)) or 1
    avg_cpu = min(MAX_CPU, round(traffic / run_count / TRAFFIC_PER_POD * TARGET_POD_CPU + rng.random() * CPU_JITTER))
    alive = [p.with_status(PodStatus.RUNNING, cpu=avg_cpu) if p.is_running else p for p in alive]

    return ScalingResult(
        pods=tuple(alive),
        avg_cpu=avg_cpu,
        cooldown_remaining=cooldown,
        logs=logs,
        nodes=tuple(live_nodes),
    )
