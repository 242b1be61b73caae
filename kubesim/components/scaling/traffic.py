"""External load signal for autoscaling simulations.

Traffic follows the most recent active scaling event, or wanders around the
baseline with a little jitter when no event is active. The message queue
used by event-driven scaling fills on a ``queue_burst`` and drains as
running pods consume it.
"""

from __future__ import annotations

from collections.abc import Sequence

from kubesim.components.scaling.common import JitterSource
from kubesim.core.entity import Pod, running
from kubesim.core.event import ScalingEventType, SimEvent, fired_on

RAMP_TICKS = 60
RAMP_MAX_EXTRA = 3.0
COOL_DOWN_DECAY = 0.85
MIN_TRAFFIC = 5.0
BASELINE_JITTER = 10.0
QUEUE_BURST_SIZE = 500
MESSAGES_PER_POD_PER_TICK = 2


def apply_traffic_event(
    current: float, base: float, event_type: ScalingEventType, ticks_since: int
) -> float:
    """Traffic produced by ``event_type``, ``ticks_since`` ticks after it fired."""
    if event_type is ScalingEventType.TRAFFIC_SPIKE_2X:
        return base * 2
    if event_type is ScalingEventType.TRAFFIC_SPIKE_5X:
        return base * 5
    if event_type is ScalingEventType.GRADUAL_RAMP:
        # up to 4x over RAMP_TICKS
        return base * (1 + min(ticks_since / RAMP_TICKS, RAMP_MAX_EXTRA))
    if event_type is ScalingEventType.COOL_DOWN:
        return max(base, current * COOL_DOWN_DECAY)
    # pod_crash and queue_burst leave traffic alone
    return current


def next_traffic(
    current: float,
    base: float,
    events: Sequence[SimEvent],
    tick: int,
    rng: JitterSource,
) -> float:
    """Traffic for ``tick`` given the active (non-expired) events."""
    if events:
        latest = events[-1]
        traffic = apply_traffic_event(current, base, latest.type, latest.ticks_since(tick))
    else:
        traffic = base + (rng.random() - 0.5) * BASELINE_JITTER
    return max(MIN_TRAFFIC, traffic)


def crash_victim(pods: Sequence[Pod], events: Sequence[SimEvent], tick: int) -> Pod | None:
    """The pod killed by a ``pod_crash`` triggered on the previous tick.

    The newest running pod is chosen; the last running pod is never killed.
    """
    if not fired_on(events, ScalingEventType.POD_CRASH, tick):
        return None
    alive = running(pods)
    if len(alive) <= 1:
        return None
    return alive[-1]


def next_queue_depth(
    queue_depth: int, pods: Sequence[Pod], events: Sequence[SimEvent], tick: int
) -> int:
    """Queue length for ``tick``.

    A burst lands one tick after it is triggered; every running pod then
    consumes ``MESSAGES_PER_POD_PER_TICK`` messages per tick.
    """
    bursts = len(fired_on(events, ScalingEventType.QUEUE_BURST, tick))
    queue_depth += bursts * QUEUE_BURST_SIZE
    consumed = len(running(pods)) * MESSAGES_PER_POD_PER_TICK
    return max(0, queue_depth - consumed)
