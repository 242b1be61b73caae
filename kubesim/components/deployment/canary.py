"""Canary deployment tick function.

One canary (v2) server starts next to the stable fleet. Once it is running
(tick 3 of the run) traffic walks through ``stages``, spending
``stage_duration`` ticks at each. Reaching 100% promotes v2 to the whole
fleet. An error rate above ``error_threshold`` rolls back on the same tick.
"""

from __future__ import annotations

import logging

from kubesim.components.deployment.common import (
    DeploymentResult,
    baseline,
    make_servers,
    restore_v1,
    run_context,
    set_status,
)
from kubesim.config import CanaryConfig, replicas_of
from kubesim.core.entity import ServerStatus, Version
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

CANARY_READY_TICK = 3
ERROR_STEP = 8.0
MAX_ERROR_RATE = 30.0


def canary_stage(ticks_since_deploy: int, config: CanaryConfig) -> int | None:
    """Stage index for ``ticks_since_deploy``, or None outside the stage range."""
    if ticks_since_deploy < CANARY_READY_TICK or not config.stages:
        return None
    index = (ticks_since_deploy - CANARY_READY_TICK) // max(1, config.stage_duration)
    return index if index < len(config.stages) else None


def canary_tick(state: DeploymentSimState, config: CanaryConfig) -> DeploymentResult:
    """Compute the canary state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    t = ctx.ticks_since_deploy
    servers = list(state.servers)
    v1, v2 = state.v1_traffic, state.v2_traffic
    error_rate = state.error_rate
    phase = state.phase
    stage = state.current_stage
    logs: list[LogLine] = []
    fleet_size = replicas_of(config)

    if t == 1:
        canary = make_servers(1, "canary", Version.V2, ServerStatus.DEPLOYING, ctx.anchor.tick)
        servers = baseline(state, fleet_size) + canary
        v1, v2, error_rate = 100.0, 0.0, 0.0
        stage = -1
        phase = Phase.DEPLOYING
        logs.append(LogLine("Deploying canary pod...", LogType.ACTION))

    if t == CANARY_READY_TICK and phase is Phase.DEPLOYING:
        servers = set_status(servers, ServerStatus.RUNNING, version=Version.V2, only=ServerStatus.DEPLOYING)

    index = canary_stage(t, config)
    if index is not None and index != stage and not phase.is_terminal:
        stage = index
        percent = config.stages[index]
        v1, v2 = 100.0 - percent, float(percent)
        phase = Phase.MONITORING
        logs.append(LogLine(f"Canary stage {index + 1}: {percent:g}% traffic to v2", LogType.ACTION))
        if percent >= 100:
            stable = [s for s in servers if s.version is Version.V1] or make_servers(
                fleet_size, "stable", Version.V1, ServerStatus.RUNNING, state.tick
            )
            servers = [s.with_status(ServerStatus.RUNNING, version=Version.V2) for s in stable]
            v1, v2 = 0.0, 100.0
            phase = Phase.COMPLETE
            logs.append(LogLine("Canary promoted to 100%. Deployment complete!", LogType.SUCCESS))
            logger.info("[canary] promotion complete at tick %d", state.tick)

    if ctx.error_fired:
        error_rate = min(error_rate + ERROR_STEP, MAX_ERROR_RATE)
        if not phase.is_terminal:
            servers = set_status(servers, ServerStatus.FAILING, version=Version.V2)
        logs.append(LogLine(f"Error injected on v2! Error rate: {error_rate:g}%", LogType.ERROR))

    if error_rate > config.error_threshold and not phase.is_terminal:
        logs.append(
            LogLine(
                f"Error rate {error_rate:g}% > threshold {config.error_threshold:g}%. Rolling back!",
                LogType.ERROR,
            )
        )
        logger.warning("[canary] auto rollback at tick %d (error rate %g%%)", state.tick, error_rate)
        servers = restore_v1(servers, fleet_size, state.tick)
        v1, v2, error_rate = 100.0, 0.0, 0.0
        stage = -1
        phase = Phase.ROLLING_BACK

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        servers = restore_v1(servers, fleet_size, state.tick)
        v1, v2, error_rate = 100.0, 0.0, 0.0
        stage = -1
        phase = Phase.ROLLING_BACK
        logs.append(LogLine("Manual rollback initiated. Restoring v1.", LogType.ACTION))
        logger.warning("[canary] manual rollback at tick %d", state.tick)

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=v1,
        v2_traffic=v2,
        error_rate=error_rate,
        phase=phase,
        current_stage=stage,
        logs=logs,
    )
