"""Blue-green deployment tick function.

A full green (v2) environment is started next to blue (v1), health-checked,
and then receives all traffic in one switch. Rolling back is the reverse
switch: blue never went away.

Timeline, in ticks after ``deploy_v2``:

- 1: green servers ``deploying``
- ``health_check_duration + 1``: health check; greens ``running``, or the
  switch is aborted if they are failing
- ``health_check_duration + 3``: traffic switched to green, phase
  ``monitoring``
"""

from __future__ import annotations

import logging

from kubesim.components.deployment.common import (
    DeploymentResult,
    baseline,
    make_servers,
    run_context,
    set_status,
)
from kubesim.config import BlueGreenConfig, replicas_of
from kubesim.core.entity import ServerStatus, Version
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

ERROR_STEP = 15.0
MAX_ERROR_RATE = 50.0


def blue_green_tick(state: DeploymentSimState, config: BlueGreenConfig) -> DeploymentResult:
    """Compute the blue-green state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    t = ctx.ticks_since_deploy
    servers = list(state.servers)
    v1, v2 = state.v1_traffic, state.v2_traffic
    error_rate = state.error_rate
    phase = state.phase
    logs: list[LogLine] = []

    def roll_back() -> None:
        nonlocal servers, v1, v2, error_rate, phase
        phase = Phase.ROLLING_BACK
        v1, v2 = 100.0, 0.0
        error_rate = 0.0
        servers = set_status(servers, ServerStatus.STOPPED, version=Version.V2)

    if t == 1:
        greens = make_servers(config.replicas, "green", Version.V2, ServerStatus.DEPLOYING, ctx.anchor.tick)
        servers = baseline(state, replicas_of(config)) + greens
        v1, v2, error_rate = 100.0, 0.0, 0.0
        phase = Phase.DEPLOYING
        logs.append(LogLine(f"Deploying {config.replicas} green (v2) pods...", LogType.ACTION))

    if ctx.error_fired and phase is not Phase.ROLLING_BACK:
        servers = set_status(servers, ServerStatus.FAILING, version=Version.V2)
        if v2 > 0:
            error_rate = min(error_rate + ERROR_STEP, MAX_ERROR_RATE)
            logs.append(LogLine(f"Errors injected! Error rate: {error_rate:g}%", LogType.ERROR))
        else:
            logs.append(LogLine("Errors injected into green environment before the switch.", LogType.WARNING))

    if phase is Phase.DEPLOYING and t in (config.health_check_duration + 1, config.health_check_duration + 3):
        greens_failing = any(s.version is Version.V2 and s.status is ServerStatus.FAILING for s in servers)
        if greens_failing:
            roll_back()
            logs.append(LogLine("Green health check failed. Staying on Blue (v1).", LogType.ERROR))
            logger.warning("[blue-green] health check failed at tick %d, switch aborted", state.tick)
        elif t == config.health_check_duration + 1:
            servers = set_status(servers, ServerStatus.RUNNING, version=Version.V2, only=ServerStatus.DEPLOYING)
            logs.append(LogLine("Green environment healthy. Ready to switch traffic.", LogType.SUCCESS))

    if phase is Phase.DEPLOYING and t == config.health_check_duration + 3:
        v1, v2 = 0.0, 100.0
        phase = Phase.MONITORING
        logs.append(LogLine("Traffic switched: Blue -> Green. Monitoring...", LogType.ACTION))

    if error_rate > config.rollback_threshold and v2 > 0 and not phase.is_terminal:
        logs.append(
            LogLine(
                f"Error rate {error_rate:g}% exceeds threshold {config.rollback_threshold:g}%. Auto-rolling back!",
                LogType.ERROR,
            )
        )
        logger.warning("[blue-green] auto rollback at tick %d (error rate %g%%)", state.tick, error_rate)
        roll_back()

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        roll_back()
        logs.append(LogLine("Manual rollback: Traffic switched back to Blue (v1).", LogType.ACTION))
        logger.warning("[blue-green] manual rollback at tick %d", state.tick)

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=v1,
        v2_traffic=v2,
        error_rate=error_rate,
        phase=phase,
        logs=logs,
    )
