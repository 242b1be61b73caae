"""Entities, events, state records, narration log and the wall-clock ticker."""

from kubesim.core.clock import Ticker
from kubesim.core.entity import Node, NodeStatus, Pod, PodStatus, Server, ServerStatus, Version
from kubesim.core.event import DeploymentEventType, ScalingEventType, SimEvent
from kubesim.core.log import LogEntry, LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase, ResourceRequests, ScalingSimState, SimState

__all__ = [
    "DeploymentEventType",
    "DeploymentSimState",
    "LogEntry",
    "LogLine",
    "LogType",
    "Node",
    "NodeStatus",
    "Phase",
    "Pod",
    "PodStatus",
    "ResourceRequests",
    "ScalingEventType",
    "ScalingSimState",
    "Server",
    "ServerStatus",
    "SimEvent",
    "SimState",
    "Ticker",
    "Version",
]
