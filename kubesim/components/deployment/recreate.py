"""Recreate deployment tick function.

Every old server is stopped before any new one starts, so the service is
down for exactly ``startup_time`` ticks:

- 1: all servers ``draining``
- ``shutdown_grace + 1``: servers removed, v2 ``deploying``, error rate 100
- ``shutdown_grace + startup_time + 1``: v2 ``running`` (complete), or
  ``failing`` (CrashLoopBackOff) if an error was injected

A rollback recreates v1 the same way.
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
from kubesim.config import RecreateConfig, replicas_of
from kubesim.core.entity import ServerStatus, Version
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

DOWN_ERROR_RATE = 100.0


def recreate_tick(state: DeploymentSimState, config: RecreateConfig) -> DeploymentResult:
    """Compute the recreate state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    t = ctx.ticks_since_deploy
    replicas = replicas_of(config)
    grace = max(0, config.shutdown_grace)
    startup = max(0, config.startup_time)
    servers = list(state.servers)
    v1, v2 = state.v1_traffic, state.v2_traffic
    error_rate = state.error_rate
    phase = state.phase
    logs: list[LogLine] = []

    if t == 1:
        servers = [s.with_status(ServerStatus.DRAINING) for s in baseline(state, replicas)]
        v1, v2, error_rate = 100.0, 0.0, 0.0
        phase = Phase.DEPLOYING
        logs.append(LogLine("Terminating all v1 pods...", LogType.ACTION))

    if phase is Phase.DEPLOYING and t == grace + 1:
        servers = make_servers(replicas, "v2", Version.V2, ServerStatus.DEPLOYING, ctx.anchor.tick, label="v2-pod")
        v1, v2 = 0.0, 0.0
        error_rate = DOWN_ERROR_RATE
        logs.append(
            LogLine(f"All v1 pods terminated. SERVICE DOWN. Starting {replicas} v2 pods...", LogType.WARNING)
        )
        logger.warning("[recreate] service down at tick %d", state.tick)

    if phase is Phase.DEPLOYING and t == grace + startup + 1:
        if ctx.has_error:
            servers = set_status(servers, ServerStatus.FAILING)
            error_rate = DOWN_ERROR_RATE
            logs.append(LogLine("v2 pods failing! CrashLoopBackOff!", LogType.ERROR))
            logger.warning("[recreate] v2 pods in CrashLoopBackOff at tick %d", state.tick)
        else:
            servers = set_status(servers, ServerStatus.RUNNING)
            v1, v2 = 0.0, 100.0
            error_rate = 0.0
            phase = Phase.COMPLETE
            logs.append(LogLine("v2 pods healthy. Service restored!", LogType.SUCCESS))
    elif phase is Phase.COMPLETE and ctx.error_fired:
        servers = set_status(servers, ServerStatus.FAILING)
        error_rate = DOWN_ERROR_RATE
        logs.append(LogLine("v2 pods failing! CrashLoopBackOff!", LogType.ERROR))

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        servers = make_servers(replicas, "v1", Version.V1, ServerStatus.DEPLOYING, state.tick, label="v1-pod")
        v1, v2 = 0.0, 0.0
        error_rate = DOWN_ERROR_RATE
        phase = Phase.ROLLING_BACK
        logs.append(LogLine(f"Rollback: Recreating {replicas} v1 pods. SERVICE DOWN.", LogType.WARNING))
        logger.warning("[recreate] rollback at tick %d", state.tick)

    if (
        phase is Phase.ROLLING_BACK
        and ctx.rollback is not None
        and ctx.tick - ctx.rollback.tick == startup + 1
    ):
        servers = set_status(servers, ServerStatus.RUNNING, version=Version.V1)
        v1, v2 = 100.0, 0.0
        error_rate = 0.0
        logs.append(LogLine("v1 pods running. Service restored on v1.", LogType.SUCCESS))

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=v1,
        v2_traffic=v2,
        error_rate=error_rate,
        phase=phase,
        logs=logs,
    )
