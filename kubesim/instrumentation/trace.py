"""Tabular traces of a simulation run.

A trace is a pandas DataFrame with one row per recorded state, indexed by
tick. Scaling and deployment states share the metric columns; family
specific columns are left empty (NaN / None) where they do not apply.

Example::

    states = [sim.step() for _ in range(30)]
    frame = history_frame(states)
    frame[["traffic", "replicas"]].plot()
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from kubesim.core.state import SimState
    from kubesim.simulation import Simulation

TICK = "tick"
COLUMNS = [
    TICK,
    "traffic",
    "replicas",
    "running",
    "cpu_percent",
    "latency_ms",
    "availability",
    "cost_per_hour",
    "queue_depth",
    "nodes",
    "error_rate",
    "v1_traffic",
    "v2_traffic",
    "mirror_traffic",
    "phase",
]


def state_row(state: SimState) -> dict:
    """Flatten one state into a trace row."""
    metrics = state.metrics
    entities = state.entities
    row = {
        TICK: state.tick,
        "traffic": metrics.traffic,
        "replicas": len(entities),
        "running": sum(1 for e in entities if e.is_running),
        "cpu_percent": metrics.cpu_percent,
        "latency_ms": metrics.latency_ms,
        "availability": metrics.availability,
        "cost_per_hour": metrics.cost_per_hour,
        "queue_depth": metrics.queue_depth,
        "nodes": None,
        "error_rate": None,
        "v1_traffic": None,
        "v2_traffic": None,
        "mirror_traffic": None,
        "phase": None,
    }
    if hasattr(state, "servers"):
        row.update(
            error_rate=state.error_rate,
            v1_traffic=state.v1_traffic,
            v2_traffic=state.v2_traffic,
            mirror_traffic=state.mirror_traffic,
            phase=state.phase.value,
        )
    elif state.nodes:
        row["nodes"] = len(state.nodes)
    return row


def history_frame(states: Iterable[SimState]) -> pd.DataFrame:
    """Build a trace DataFrame indexed by tick.

    Later states win when the same tick appears twice.
    """
    rows = [state_row(s) for s in states]
    frame = pd.DataFrame(rows, columns=COLUMNS)
    if frame.empty:
        return frame.set_index(TICK)
    return frame.drop_duplicates(subset=TICK, keep="last").set_index(TICK).sort_index()


def record(simulation: Simulation, ticks: int) -> pd.DataFrame:
    """Step ``simulation`` ``ticks`` times and return the trace, starting state included."""
    states = [simulation.get_state()]
    for _ in range(ticks):
        states.append(simulation.tick())
    return history_frame(states)
