"""Shadow (dark launch) deployment tick function.

A shadow v2 fleet receives a mirrored copy of production traffic; its
responses are discarded, so production keeps serving 100% on v1. An error
injection models a shadow that writes to shared state and contaminates
production. A rollback removes the shadows.
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
from kubesim.components.scaling.common import JitterSource
from kubesim.config import ShadowConfig, replicas_of
from kubesim.core.entity import ServerStatus, Version
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

SHADOW_READY_TICK = 3
COMPARISON_EVERY = 8
COMPARISON_AFTER = 5
CONTAMINATION_ERROR_RATE = 5.0


def shadow_tick(state: DeploymentSimState, config: ShadowConfig, rng: JitterSource) -> DeploymentResult:
    """Compute the shadow deployment state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    t = ctx.ticks_since_deploy
    servers = list(state.servers)
    mirror = state.mirror_traffic
    error_rate = state.error_rate
    phase = state.phase
    logs: list[LogLine] = []

    if t == 1:
        shadows = make_servers(
            config.replicas, "shadow", Version.V2, ServerStatus.DEPLOYING, ctx.anchor.tick, is_shadow=True
        )
        servers = baseline(state, replicas_of(config)) + shadows
        mirror, error_rate = 0.0, 0.0
        phase = Phase.DEPLOYING
        logs.append(
            LogLine(
                f"Deploying {config.replicas} shadow pods. Mirroring {config.mirror_percent:g}% traffic...",
                LogType.ACTION,
            )
        )

    if t == SHADOW_READY_TICK and phase is Phase.DEPLOYING:
        servers = set_status(servers, ServerStatus.RUNNING, shadow=True, only=ServerStatus.DEPLOYING)
        mirror = float(config.mirror_percent)
        phase = Phase.MONITORING
        logs.append(LogLine("Shadow pods running. Mirrored traffic flowing. Responses discarded.", LogType.SUCCESS))

    if t > COMPARISON_AFTER and t % COMPARISON_EVERY == 0 and phase is Phase.MONITORING and not ctx.errors:
        match = 85 + int(rng.random() * 10)
        logs.append(LogLine(f"Shadow comparison: {match}% responses match production."))

    if ctx.error_fired:
        error_rate = CONTAMINATION_ERROR_RATE
        servers = set_status(servers, ServerStatus.FAILING, shadow=False)
        logs.append(LogLine("Shadow writing to shared cache! Production data contaminated!", LogType.ERROR))
        logger.warning("[shadow] production contaminated at tick %d", state.tick)

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        servers = [s.with_status(ServerStatus.RUNNING) for s in servers if not s.is_shadow]
        mirror, error_rate = 0.0, 0.0
        phase = Phase.ROLLING_BACK
        logs.append(LogLine("Shadow pods removed. Production restored.", LogType.ACTION))
        logger.info("[shadow] shadows removed at tick %d", state.tick)

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=100.0,
        v2_traffic=0.0,
        error_rate=error_rate,
        phase=phase,
        mirror_traffic=mirror,
        logs=logs,
    )
