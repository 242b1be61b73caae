"""Rolling update tick function.

Old (v1) servers are replaced by v2 one at a time, one replacement every
``readiness_delay + 1`` ticks. With ``max_unavailable > 0`` the next old
server drains ahead of its replacement; with ``max_surge > 0`` an extra v2
server starts ahead of time. With both at zero the rollout cannot make
progress. Traffic follows the share of running servers on each version.
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
from kubesim.config import RollingConfig, replicas_of
from kubesim.core.entity import Server, ServerStatus, Version, running
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

ERROR_STEP = 12.0
MAX_ERROR_RATE = 40.0


def replaced_count(ticks_since_deploy: int, config: RollingConfig) -> int:
    """Servers replaced by v2 after ``ticks_since_deploy`` ticks."""
    step = max(0, config.readiness_delay) + 1
    return min(replicas_of(config), max(0, ticks_since_deploy) // step)


def traffic_split(servers: list[Server], v1: float, v2: float) -> tuple[float, float]:
    """Split production traffic by running servers; keep ``(v1, v2)`` if none run."""
    live = running(servers)
    if not live:
        return v1, v2
    v2_share = round(sum(1 for s in live if s.version is Version.V2) / len(live) * 100)
    return 100.0 - v2_share, float(v2_share)


def _prepare_next(old: list[Server], config: RollingConfig, run_tick: int, index: int) -> tuple[list[Server], list[Server]]:
    """Drain the next old server and start a surge server ahead of it."""
    if old and config.max_unavailable > 0:
        old = [old[0].with_status(ServerStatus.DRAINING)] + old[1:]
    surge = []
    if old and config.max_surge > 0:
        surge = [
            Server(
                id=f"surge-{run_tick}-{index}",
                label=f"surge-{index + 1}",
                version=Version.V2,
                status=ServerStatus.DEPLOYING,
            )
        ]
    return old, surge


def rolling_tick(state: DeploymentSimState, config: RollingConfig) -> DeploymentResult:
    """Compute the rolling update state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    t = ctx.ticks_since_deploy
    run_tick = ctx.anchor.tick
    replicas = replicas_of(config)
    servers = list(state.servers)
    v1, v2 = state.v1_traffic, state.v2_traffic
    error_rate = state.error_rate
    phase = state.phase
    logs: list[LogLine] = []

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        servers = make_servers(replicas, "rollback", Version.V1, ServerStatus.RUNNING, state.tick, label="pod-v1")
        logs.append(LogLine("Rollback: Reverting all pods to v1.", LogType.ACTION))
        logger.warning("[rolling] rollback at tick %d", state.tick)
        return DeploymentResult(tuple(servers), 100.0, 0.0, 0.0, Phase.ROLLING_BACK, logs=logs)

    if phase is Phase.ROLLING_BACK and t > 1:
        return DeploymentResult.from_state(state)

    if t == 1:
        old = baseline(state, replicas)[:replicas]
        old += make_servers(replicas - len(old), "stable", Version.V1, ServerStatus.RUNNING, run_tick)
        error_rate = 0.0
        phase = Phase.DEPLOYING
        if config.max_surge <= 0 and config.max_unavailable <= 0:
            servers = old
            logs.append(
                LogLine("maxSurge and maxUnavailable are both 0: the rollout cannot progress.", LogType.WARNING)
            )
            logger.warning("[rolling] rollout stalled: maxSurge=0 and maxUnavailable=0")
        else:
            old, surge = _prepare_next(old, config, run_tick, 0)
            servers = old + surge
            logs.append(
                LogLine(
                    f"Rolling update started: maxSurge={config.max_surge}, maxUnavailable={config.max_unavailable}",
                    LogType.ACTION,
                )
            )

    stalled = config.max_surge <= 0 and config.max_unavailable <= 0
    failing = any(s.version is Version.V2 and s.status is ServerStatus.FAILING for s in servers)
    done = replaced_count(t, config)
    if phase is Phase.DEPLOYING and not stalled and not failing and done > replaced_count(t - 1, config):
        old = [s for s in servers if s.version is Version.V1]
        new = [s for s in servers if s.version is Version.V2 and s.status is not ServerStatus.DEPLOYING]
        old = old[1:]
        new.append(
            Server(id=f"v2-{run_tick}-{done - 1}", label=f"pod-v2-{done}", version=Version.V2, status=ServerStatus.RUNNING)
        )
        surge = []
        if done < replicas:
            old, surge = _prepare_next(old, config, run_tick, done)
        servers = new + old + surge
        logs.append(LogLine(f"Rolling: {done}/{replicas} pods on v2", LogType.ACTION))
        if done >= replicas:
            servers = new
            phase = Phase.COMPLETE
            logs.append(LogLine("Rolling update complete! All pods on v2.", LogType.SUCCESS))
            logger.info("[rolling] complete at tick %d", state.tick)

    if ctx.error_fired:
        error_rate = min(error_rate + ERROR_STEP, MAX_ERROR_RATE)
        servers = set_status(servers, ServerStatus.FAILING, version=Version.V2)
        logs.append(LogLine(f"Errors on v2 pods! Error rate: {error_rate:g}%", LogType.ERROR))
        if phase is Phase.DEPLOYING:
            logs.append(LogLine("Rollout paused: v2 pods are failing readiness checks.", LogType.WARNING))

    if phase is Phase.COMPLETE and not any(s.status is ServerStatus.FAILING for s in servers):
        v1, v2 = 0.0, 100.0
    else:
        v1, v2 = traffic_split(servers, v1, v2)

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=v1,
        v2_traffic=v2,
        error_rate=error_rate,
        phase=phase,
        logs=logs,
    )
