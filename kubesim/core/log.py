"""Narration log records.

Tick functions return :class:`LogLine` values (message and severity only).
The driver stamps them into :class:`LogEntry` records with ids drawn from a
counter stored on the simulation state, so ids are monotonic within a run,
start over after a reset, and never collide between simulations.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum


class LogType(Enum):
    """Severity of a narration log line."""

    INFO = "info"
    ACTION = "action"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class LogLine:
    """An unstamped log line produced by a tick function."""

    message: str
    type: LogType = LogType.INFO


@dataclass(frozen=True)
class LogEntry:
    """A stamped narration log entry.

    Attributes:
        id: Identifier unique within one simulation run.
        tick: Tick at which the entry was written.
        message: Human-readable text.
        type: Severity.
    """

    id: str
    tick: int
    message: str
    type: LogType = LogType.INFO

    @property
    def timestamp(self) -> str:
        return f"t={self.tick}"


def stamp(
    lines: Iterable[LogLine], tick: int, next_id: int, prefix: str = "sim"
) -> tuple[list[LogEntry], int]:
    """Turn log lines into entries.

    Returns:
        The stamped entries and the next free id.
    """
    entries = []
    for line in lines:
        entries.append(LogEntry(f"{prefix}-{next_id}", tick, line.message, line.type))
        next_id += 1
    return entries, next_id


def append_capped(
    existing: Sequence[LogEntry], new: Sequence[LogEntry], capacity: int
) -> tuple[LogEntry, ...]:
    """Append ``new`` to ``existing`` keeping only the newest ``capacity`` entries."""
    combined = tuple(existing) + tuple(new)
    if capacity <= 0:
        return ()
    return combined[-capacity:]
