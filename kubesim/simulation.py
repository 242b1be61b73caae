"""Simulation driver.

The driver owns the only mutable reference to a simulation's state. Each
tick it hands the current immutable state to the strategy, stamps the log
lines the strategy produced, and swaps in the new state. All public
operations are serialized under one re-entrant lock, so a tick never
overlaps another tick, an event trigger or a reset.

Example::

    sim = create_simulation("hpa", seed=7)
    sim.trigger_event("traffic_spike_5x")
    state = sim.step(10)
    print(state.metrics.pod_count)
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import replace

from kubesim.components.scaling.common import JitterSource
from kubesim.config import (
    CONFIG_TYPES,
    Config,
    ConfigError,
    EngineSettings,
    Family,
    SimulationKind,
    default_config,
)
from kubesim.core.clock import Ticker
from kubesim.core.event import DeploymentEventType, EventType, ScalingEventType, SimEvent
from kubesim.core.log import LogLine, LogType, append_capped, stamp
from kubesim.core.state import SimState
from kubesim.strategies import SimulationStrategy, strategy_for

logger = logging.getLogger(__name__)

SPEEDS = (1, 2, 4)

_EVENT_LOGS: dict[EventType, LogLine] = {
    ScalingEventType.TRAFFIC_SPIKE_2X: LogLine("Traffic spike: 2x load!", LogType.WARNING),
    ScalingEventType.TRAFFIC_SPIKE_5X: LogLine("Traffic spike: 5x load!", LogType.WARNING),
    ScalingEventType.GRADUAL_RAMP: LogLine("Gradual traffic ramp started...", LogType.WARNING),
    ScalingEventType.POD_CRASH: LogLine("Simulating pod crash...", LogType.ERROR),
    ScalingEventType.COOL_DOWN: LogLine("Cooling down traffic to baseline...", LogType.SUCCESS),
    ScalingEventType.QUEUE_BURST: LogLine("Queue burst: 500 messages injected!", LogType.WARNING),
    DeploymentEventType.DEPLOY_V2: LogLine("Deploying v2...", LogType.WARNING),
    DeploymentEventType.INJECT_ERROR: LogLine("Injecting errors into v2...", LogType.ERROR),
    DeploymentEventType.TRIGGER_ROLLBACK: LogLine("Triggering rollback...", LogType.WARNING),
}


def _parse_event(event_type: EventType | str, kind: SimulationKind) -> EventType:
    family_events = ScalingEventType if kind.family is Family.SCALING else DeploymentEventType
    if isinstance(event_type, (ScalingEventType, DeploymentEventType)):
        parsed = event_type
    else:
        try:
            parsed = family_events(str(event_type).lower())
        except ValueError:
            parsed = None
    if not isinstance(parsed, family_events):
        valid = ", ".join(e.value for e in family_events)
        raise ValueError(f"Event {event_type!r} is not valid for {kind.value}; expected one of: {valid}")
    return parsed


class Simulation:
    """A running (or paused) simulation of one kind.

    Args:
        strategy: Builds and advances states for the simulation kind.
        config: Parameters for the kind. Defaults to the kind's defaults.
        settings: Engine-wide constants. Defaults to ``EngineSettings()``.
        rng: Jitter source. Defaults to a fresh ``random.Random``.
    """

    def __init__(
        self,
        strategy: SimulationStrategy,
        config: Config | None = None,
        settings: EngineSettings | None = None,
        rng: JitterSource | None = None,
    ):
        self._strategy = strategy
        self._config = config if config is not None else default_config(strategy.kind)
        self._check_config(self._config)
        self._settings = settings or EngineSettings()
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.RLock()
        self._ticker: Ticker | None = None
        self._speed = 1
        self._state = self._strategy.initial_state(self._config, self._settings, self._rng)
        logger.debug("[%s] Simulation created with %s", self.kind.value, self._config)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def kind(self) -> SimulationKind:
        return self._strategy.kind

    @property
    def config(self) -> Config:
        return self._config

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def is_running(self) -> bool:
        """True while the wall-clock cadence is active."""
        with self._lock:
            return self._ticker is not None

    @property
    def interval_s(self) -> float:
        """Wall-clock seconds between ticks at the current speed."""
        return self._settings.base_interval_ms / self._speed / 1000.0

    # ------------------------------------------------------------------
    # Execution control
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin ticking on the wall-clock cadence. No-op if already running."""
        with self._lock:
            if self._ticker is not None:
                return
            self._ticker = Ticker(
                self.interval_s, self.tick, name=f"kubesim-{self.kind.value}", on_error=self._ticker_failed
            )
            self._ticker.start()
        logger.info("[%s] Started at %dx (%.0f ms/tick)", self.kind.value, self._speed, self.interval_s * 1000)

    def pause(self) -> None:
        """Stop the cadence. State is kept."""
        with self._lock:
            ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
            logger.info("[%s] Paused at tick %d", self.kind.value, self._state.tick)

    def _ticker_failed(self, ticker: Ticker) -> None:
        with self._lock:
            if self._ticker is ticker:
                self._ticker = None
        logger.error("[%s] Stopped after a failed tick at tick %d", self.kind.value, self._state.tick)

    def reset(self) -> None:
        """Stop the cadence and rebuild the initial state."""
        self.pause()
        with self._lock:
            self._state = self._strategy.initial_state(self._config, self._settings, self._rng)
        logger.info("[%s] Reset", self.kind.value)

    def change_speed(self, speed: int) -> None:
        """Set the speed multiplier (1, 2 or 4).

        A running simulation keeps running at the new cadence.

        Raises:
            ValueError: If ``speed`` is not 1, 2 or 4.
        """
        if speed not in SPEEDS:
            raise ValueError(f"speed must be one of {SPEEDS}, got {speed!r}")
        was_running = self.is_running
        self.pause()
        with self._lock:
            self._speed = speed
        if was_running:
            self.start()
        logger.debug("[%s] Speed set to %dx", self.kind.value, speed)

    def tick(self) -> SimState:
        """Advance one tick and return the new state."""
        with self._lock:
            state, lines = self._strategy.advance(self._state, self._config, self._settings, self._rng)
            entries, next_id = stamp(lines, state.tick, state.next_log_id, self._strategy.log_prefix)
            self._state = replace(
                state, logs=append_capped(state.logs, entries, self._settings.log_capacity), next_log_id=next_id
            )
            return self._state

    def step(self, n: int = 1) -> SimState:
        """Run ``n`` ticks synchronously and return the final state.

        Raises:
            ValueError: If ``n`` is less than 1.
        """
        if n < 1:
            raise ValueError("step count must be >= 1")
        with self._lock:
            for _ in range(n):
                self.tick()
            logger.debug("[%s] Stepped %d tick(s) to tick %d", self.kind.value, n, self._state.tick)
            return self._state

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def trigger_event(self, event_type: EventType | str) -> SimEvent:
        """Record an event at the current tick.

        The event takes effect on later ticks; entity state is not touched.

        Raises:
            ValueError: If the event does not belong to this simulation family.
        """
        parsed = _parse_event(event_type, self.kind)
        with self._lock:
            event = SimEvent(parsed, self._state.tick)
            line = _EVENT_LOGS.get(parsed, LogLine(f"Event: {parsed.value}"))
            entries, next_id = stamp([line], event.tick, self._state.next_log_id, self._strategy.log_prefix)
            self._state = replace(
                self._state,
                events=self._state.events + (event,),
                logs=append_capped(self._state.logs, entries, self._settings.log_capacity),
                next_log_id=next_id,
            )
        logger.info("[%s] Event %s at tick %d", self.kind.value, parsed.value, event.tick)
        return event

    def update_config(self, config: Config) -> None:
        """Replace the config wholesale.

        Takes effect from the next tick; the current state is kept.

        Raises:
            RuntimeError: If the simulation is running.
            ConfigError: If ``config`` is for a different simulation kind.
        """
        self._check_config(config)
        with self._lock:
            if self._ticker is not None:
                raise RuntimeError("Cannot change config while the simulation is running; pause it first")
            self._config = config
        logger.info("[%s] Config updated: %s", self.kind.value, config)

    def get_state(self) -> SimState:
        """Return the current immutable state snapshot."""
        with self._lock:
            return self._state

    def _check_config(self, config: Config) -> None:
        expected = CONFIG_TYPES[self.kind]
        if not isinstance(config, expected):
            raise ConfigError(
                f"{self.kind.value} simulation needs a {expected.__name__}, got {type(config).__name__}"
            )


def create_simulation(
    kind: SimulationKind | str,
    config: Config | None = None,
    *,
    settings: EngineSettings | None = None,
    seed: int | None = None,
    rng: JitterSource | None = None,
) -> Simulation:
    """Create a simulation of the given kind.

    Args:
        kind: One of ``hpa``, ``vpa``, ``cluster``, ``keda``, ``blue-green``,
            ``canary``, ``rolling``, ``recreate``, ``ab-testing``, ``shadow``.
        config: Parameters for the kind; defaults when omitted.
        settings: Engine-wide constants.
        seed: Seed for a fresh ``random.Random``. Ignored when ``rng`` is given.
        rng: Jitter source to use instead of a seeded generator.

    Raises:
        ValueError: If ``kind`` is unknown.
        ConfigError: If ``config`` does not match ``kind``.
    """
    strategy = strategy_for(kind)
    if rng is None:
        rng = random.Random(seed)
    return Simulation(strategy, config=config, settings=settings, rng=rng)
