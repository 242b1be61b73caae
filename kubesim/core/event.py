"""Simulation events triggered by users or scenarios.

A ``SimEvent`` only records *that* something happened and *when*. Tick
functions realize its effect lazily by comparing the current tick with the
event's tick, so triggering an event never changes entity state directly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class ScalingEventType(Enum):
    """Stimuli accepted by autoscaling simulations."""

    TRAFFIC_SPIKE_2X = "traffic_spike_2x"
    TRAFFIC_SPIKE_5X = "traffic_spike_5x"
    GRADUAL_RAMP = "gradual_ramp"
    POD_CRASH = "pod_crash"
    COOL_DOWN = "cool_down"
    QUEUE_BURST = "queue_burst"


class DeploymentEventType(Enum):
    """Stimuli accepted by deployment simulations."""

    DEPLOY_V2 = "deploy_v2"
    INJECT_ERROR = "inject_error"
    TRIGGER_ROLLBACK = "trigger_rollback"


EventType = ScalingEventType | DeploymentEventType


@dataclass(frozen=True)
class SimEvent:
    """An immutable record of a stimulus.

    Attributes:
        type: What happened.
        tick: The tick at which it was triggered.
    """

    type: EventType
    tick: int

    def ticks_since(self, tick: int) -> int:
        """Ticks elapsed between this event and ``tick``."""
        return tick - self.tick


def active_events(
    events: Iterable[SimEvent], tick: int, lookback: int
) -> tuple[SimEvent, ...]:
    """Events younger than ``lookback`` ticks at ``tick``."""
    return tuple(e for e in events if tick - e.tick < lookback)


def latest_event(events: Iterable[SimEvent], event_type: EventType) -> SimEvent | None:
    """Most recent event of ``event_type``, or None."""
    found = None
    for e in events:
        if e.type is event_type:
            found = e
    return found


def fired_on(
    events: Iterable[SimEvent], event_type: EventType, tick: int, delay: int = 1
) -> list[SimEvent]:
    """Events of ``event_type`` whose effect is due at ``tick``.

    An event triggered at tick ``k`` takes effect ``delay`` ticks later.
    """
    return [e for e in events if e.type is event_type and tick - e.tick == delay]
