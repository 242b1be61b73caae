"""Shared types and helpers for the deployment strategy tick functions.

A deployment run starts at the latest ``deploy_v2`` event (the run anchor).
Error injections and rollbacks only count when they were triggered at or
after the anchor, and take effect on the tick after they were triggered.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from kubesim.core.entity import Server, ServerStatus, Version
from kubesim.core.event import DeploymentEventType, SimEvent, latest_event
from kubesim.core.log import LogLine
from kubesim.core.state import DeploymentSimState, Phase


@dataclass(frozen=True)
class DeploymentResult:
    """Output of one deployment strategy tick.

    Attributes:
        servers: Next live server collection, shadows included.
        v1_traffic: Percent of production traffic served by v1.
        v2_traffic: Percent of production traffic served by v2.
        error_rate: Percent of requests failing.
        phase: Run phase after this tick.
        mirror_traffic: Percent of production traffic copied to shadows.
        current_stage: Canary stage index, -1 outside a canary rollout.
        logs: Narration lines produced this tick.
    """

    servers: tuple[Server, ...]
    v1_traffic: float
    v2_traffic: float
    error_rate: float
    phase: Phase
    mirror_traffic: float = 0.0
    current_stage: int = -1
    logs: list[LogLine] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: DeploymentSimState) -> DeploymentResult:
        """A result that leaves ``state`` as it is."""
        return cls(
            servers=state.servers,
            v1_traffic=state.v1_traffic,
            v2_traffic=state.v2_traffic,
            error_rate=state.error_rate,
            phase=state.phase,
            mirror_traffic=state.mirror_traffic,
            current_stage=state.current_stage,
        )


@dataclass(frozen=True)
class RunContext:
    """Events relevant to the current deployment run.

    Attributes:
        anchor: The ``deploy_v2`` event that started the run.
        tick: The tick being computed.
        errors: ``inject_error`` events triggered during the run.
        rollback: The first ``trigger_rollback`` event of the run, if any.
    """

    anchor: SimEvent
    tick: int
    errors: tuple[SimEvent, ...] = ()
    rollback: SimEvent | None = None

    @property
    def ticks_since_deploy(self) -> int:
        return self.tick - self.anchor.tick

    @property
    def error_fired(self) -> bool:
        """True when an error injection takes effect this tick."""
        return any(self.tick - e.tick == 1 for e in self.errors)

    @property
    def has_error(self) -> bool:
        """True when an error injection has taken effect by this tick."""
        return any(e.tick < self.tick for e in self.errors)

    @property
    def rollback_fired(self) -> bool:
        return self.rollback is not None and self.tick - self.rollback.tick == 1


def run_context(events: Sequence[SimEvent], tick: int) -> RunContext | None:
    """Build the context of the current run, or None before any ``deploy_v2``."""
    anchor = latest_event(events, DeploymentEventType.DEPLOY_V2)
    if anchor is None:
        return None
    in_run = [e for e in events if e.tick >= anchor.tick]
    rollbacks = [e for e in in_run if e.type is DeploymentEventType.TRIGGER_ROLLBACK]
    return RunContext(
        anchor=anchor,
        tick=tick,
        errors=tuple(e for e in in_run if e.type is DeploymentEventType.INJECT_ERROR),
        rollback=rollbacks[0] if rollbacks else None,
    )


def make_servers(
    count: int,
    prefix: str,
    version: Version,
    status: ServerStatus,
    run_tick: int = 0,
    label: str | None = None,
    is_shadow: bool = False,
) -> list[Server]:
    """Create ``count`` servers whose ids are unique across runs."""
    return [
        Server(
            id=f"{prefix}-{run_tick}-{i}",
            label=f"{label or prefix}-{i + 1}",
            version=version,
            status=status,
            is_shadow=is_shadow,
        )
        for i in range(max(0, count))
    ]


def baseline(state: DeploymentSimState, count: int) -> list[Server]:
    """The fleet a new run starts from, relabelled as the v1 baseline.

    The servers carrying production traffic survive; stopped servers and
    shadows are dropped. An empty fleet is replaced with ``count`` fresh v1
    servers.
    """
    live = [s for s in state.servers if not s.is_shadow and s.status is not ServerStatus.STOPPED]
    serving_v2 = state.v2_traffic > state.v1_traffic
    keep = [s for s in live if (s.version is Version.V2) == serving_v2] or live
    fleet = [replace(s, version=Version.V1, status=ServerStatus.RUNNING, error_rate=0.0) for s in keep]
    return fleet or make_servers(count, "stable", Version.V1, ServerStatus.RUNNING, state.tick)


def restore_v1(servers: Sequence[Server], count: int, tick: int) -> list[Server]:
    """Keep only v1 servers, all running; synthesize ``count`` if none remain."""
    restored = [
        s.with_status(ServerStatus.RUNNING, error_rate=0.0)
        for s in servers
        if s.version is Version.V1 and not s.is_shadow
    ]
    return restored or make_servers(count, "stable", Version.V1, ServerStatus.RUNNING, tick)


def set_status(
    servers: Sequence[Server],
    status: ServerStatus,
    version: Version | None = None,
    shadow: bool | None = None,
    only: ServerStatus | None = None,
) -> list[Server]:
    """Move the matching servers to ``status``; stopped servers are left alone.

    ``only`` restricts the change to servers currently in that status.
    """
    return [
        s.with_status(status)
        if s.status is not ServerStatus.STOPPED
        and (only is None or s.status is only)
        and (version is None or s.version is version)
        and (shadow is None or s.is_shadow == shadow)
        else s
        for s in servers
    ]
