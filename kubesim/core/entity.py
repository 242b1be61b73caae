"""Simulated compute entities: pods, servers and nodes.

Entities are immutable records. Tick functions never mutate an entity in
place; they build the next collection with ``dataclasses.replace`` (or the
``with_status`` helpers below) so every state snapshot stays valid after the
driver moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class PodStatus(Enum):
    """Lifecycle of a pod managed by a scaling controller."""

    PENDING = "pending"
    RUNNING = "running"
    TERMINATING = "terminating"
    RECREATING = "recreating"


class ServerStatus(Enum):
    """Lifecycle of a server managed by a deployment strategy."""

    DEPLOYING = "deploying"
    RUNNING = "running"
    FAILING = "failing"
    DRAINING = "draining"
    STOPPED = "stopped"


class NodeStatus(Enum):
    """Lifecycle of a cluster node."""

    PROVISIONING = "provisioning"
    READY = "ready"
    DRAINING = "draining"


class Version(Enum):
    """Application version a server runs."""

    V1 = "v1"
    V2 = "v2"


@dataclass(frozen=True)
class Pod:
    """A pod in a scaling simulation.

    Attributes:
        id: Unique identifier within one simulation run.
        label: Short human-readable name.
        status: Current lifecycle status.
        cpu: CPU utilization percent of the pod's request.
        memory: Memory in use, in MiB.
    """

    id: str
    label: str
    status: PodStatus = PodStatus.RUNNING
    cpu: float = 0.0
    memory: float = 0.0

    @property
    def is_running(self) -> bool:
        return self.status is PodStatus.RUNNING

    def with_status(self, status: PodStatus, **changes) -> Pod:
        return replace(self, status=status, **changes)


@dataclass(frozen=True)
class Server:
    """A server in a deployment simulation.

    Attributes:
        id: Unique identifier within one simulation run.
        label: Short human-readable name.
        version: Application version served.
        status: Current lifecycle status.
        is_shadow: True for mirrored servers that never answer users.
        error_rate: Percent of failed requests observed on this server.
    """

    id: str
    label: str
    version: Version = Version.V1
    status: ServerStatus = ServerStatus.RUNNING
    is_shadow: bool = False
    error_rate: float = 0.0

    @property
    def is_running(self) -> bool:
        return self.status is ServerStatus.RUNNING

    def with_status(self, status: ServerStatus, **changes) -> Server:
        return replace(self, status=status, **changes)


@dataclass(frozen=True)
class Node:
    """A worker node in a cluster autoscaler simulation.

    Attributes:
        id: Unique identifier within one simulation run.
        label: Short human-readable name.
        status: Current lifecycle status.
        capacity: Number of pods the node can host.
        pods: Ids of the pods scheduled on this node.
        provisioning_remaining: Ticks left before a provisioning node is ready.
    """

    id: str
    label: str
    status: NodeStatus = NodeStatus.READY
    capacity: int = 8
    pods: tuple[str, ...] = ()
    provisioning_remaining: int = 0

    @property
    def is_ready(self) -> bool:
        return self.status is NodeStatus.READY

    @property
    def utilization(self) -> float:
        """Percent of pod slots in use."""
        if self.capacity <= 0:
            return 0.0
        return len(self.pods) / self.capacity * 100


def running(entities) -> list:
    """Return the entities whose status is ``running``."""
    return [e for e in entities if e.is_running]


def count_status(entities, status) -> int:
    """Count entities in the given status."""
    return sum(1 for e in entities if e.status is status)
