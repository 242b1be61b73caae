"""Charts of a simulation trace.

Renders a trace built by :func:`kubesim.instrumentation.trace.history_frame`
to an image file with matplotlib's Agg backend, so it works headless.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


def plot_history(frame: pd.DataFrame, path: str | Path, title: str | None = None) -> Path:
    """Save a three-panel chart of ``frame`` to ``path``.

    Panels: traffic against replicas; CPU and availability; latency (and
    error rate for deployment traces).

    Returns:
        The path written.

    Raises:
        ValueError: If ``frame`` has no rows.
    """
    if frame.empty:
        raise ValueError("Cannot plot an empty trace")

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ticks = frame.index

    fig, axes = plt.subplots(3, 1, figsize=(10, 9), sharex=True)

    ax = axes[0]
    ax.plot(ticks, frame["traffic"], color="steelblue", label="traffic")
    ax.set_ylabel("Traffic")
    ax.grid(True, alpha=0.2)
    replicas_ax = ax.twinx()
    replicas_ax.step(ticks, frame["running"], where="post", color="coral", label="running")
    replicas_ax.set_ylabel("Running")
    lines = ax.get_lines() + replicas_ax.get_lines()
    ax.legend(lines, [line.get_label() for line in lines], fontsize=8, loc="upper left")

    ax = axes[1]
    ax.plot(ticks, frame["cpu_percent"], color="darkorange", label="CPU %")
    ax.plot(ticks, frame["availability"], color="seagreen", label="availability %")
    ax.set_ylim(0, 105)
    ax.set_ylabel("Percent")
    ax.legend(fontsize=8)
    ax.grid(True, alpha=0.2)

    ax = axes[2]
    ax.plot(ticks, frame["latency_ms"], color="purple", label="latency (ms)")
    if frame["error_rate"].notna().any():
        ax.plot(ticks, frame["error_rate"], color="crimson", label="error rate %")
    ax.set_xlabel("Tick")
    ax.set_ylabel("ms / %")
    ax.legend(fontsize=8)
    ax.grid(True, alpha=0.2)

    if title:
        fig.suptitle(title)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    logger.info("Saved trace chart: %s", path)
    return path
