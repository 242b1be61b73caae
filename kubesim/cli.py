"""Headless command-line runner.

Runs one simulation for a fixed number of ticks, firing scheduled events,
then prints the narration log and final metrics.

Usage:
    python -m kubesim hpa --ticks 40 --event 5:traffic_spike_5x --event 25:cool_down
    python -m kubesim canary --preset conservative --event 1:deploy_v2 --csv out/canary.csv
    python -m kubesim keda --event 3:queue_burst --plot out/keda.png --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import defaultdict
from collections.abc import Sequence

from kubesim.config import EngineSettings, SimulationKind, get_preset
from kubesim.instrumentation.plot import plot_history
from kubesim.instrumentation.trace import history_frame
from kubesim.logging_config import configure_from_env, enable_console_logging
from kubesim.simulation import create_simulation

logger = logging.getLogger(__name__)


def parse_event(value: str) -> tuple[int, str]:
    """Parse ``TICK:TYPE`` (e.g. ``5:traffic_spike_2x``)."""
    tick, sep, event_type = value.partition(":")
    if not sep or not event_type:
        raise argparse.ArgumentTypeError(f"expected TICK:TYPE, got {value!r}")
    try:
        at = int(tick)
    except ValueError:
        raise argparse.ArgumentTypeError(f"tick must be an integer, got {tick!r}") from None
    if at < 0:
        raise argparse.ArgumentTypeError(f"tick must be >= 0, got {at}")
    return at, event_type


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubesim",
        description="Run a Kubernetes autoscaling or deployment strategy simulation.",
    )
    parser.add_argument("kind", choices=[k.value for k in SimulationKind], help="simulation kind")
    parser.add_argument("--ticks", type=int, default=30, help="ticks to run (default: 30)")
    parser.add_argument("--preset", default=None, help="conservative, balanced or aggressive")
    parser.add_argument(
        "--event",
        action="append",
        type=parse_event,
        default=[],
        metavar="TICK:TYPE",
        help="trigger an event when the simulation reaches TICK (repeatable)",
    )
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--csv", default=None, help="write the trace to this CSV file")
    parser.add_argument("--plot", default=None, help="write a trace chart to this image file")
    parser.add_argument("--log-level", default=None, help="engine log level (DEBUG, INFO, ...)")
    return parser


def run(args: argparse.Namespace) -> int:
    if args.ticks < 1:
        raise ValueError("--ticks must be >= 1")

    config = get_preset(args.kind, args.preset) if args.preset else None
    sim = create_simulation(args.kind, config, settings=EngineSettings.from_env(), seed=args.seed)

    schedule: dict[int, list[str]] = defaultdict(list)
    for at, event_type in args.event:
        schedule[at].append(event_type)

    states = [sim.get_state()]
    for _ in range(args.ticks):
        for event_type in schedule.get(sim.get_state().tick, []):
            sim.trigger_event(event_type)
        states.append(sim.tick())

    final = states[-1]
    print(f"=== {args.kind} after {final.tick} ticks ===")
    for entry in final.logs:
        print(f"[{entry.timestamp:>6}] {entry.type.value:<7} {entry.message}")

    m = final.metrics
    print()
    print(f"Running:       {m.pod_count}")
    print(f"CPU:           {m.cpu_percent:g}%")
    print(f"Latency:       {m.latency_ms:g} ms")
    print(f"Availability:  {m.availability:g}%")
    print(f"Cost:          ${m.cost_per_hour:.2f}/hr")
    if m.queue_depth is not None:
        print(f"Queue depth:   {m.queue_depth}")
    if final.phase is not None:
        print(f"Phase:         {final.phase.value}")
        print(f"Traffic split: v1 {final.v1_traffic:g}% / v2 {final.v2_traffic:g}%")

    if args.csv or args.plot:
        frame = history_frame(states)
        if args.csv:
            frame.to_csv(args.csv)
            print(f"Saved: {args.csv}")
        if args.plot:
            path = plot_history(frame, args.plot, title=f"{args.kind} simulation")
            print(f"Saved: {path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        enable_console_logging(level=args.log_level.upper())
    else:
        configure_from_env()

    try:
        return run(args)
    except (ValueError, KeyError) as exc:
        # ConfigError is a ValueError; unknown presets raise KeyError
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        logger.debug("Run failed", exc_info=True)
        print(f"kubesim: error: {message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
