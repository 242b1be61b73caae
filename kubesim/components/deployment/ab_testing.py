"""A/B testing tick function.

Variant A (v1) and variant B (v2) serve a fixed traffic split for the
length of the experiment. Errors only affect the error rate; a rollback
ends the experiment and promotes A.
"""

from __future__ import annotations

import logging

from kubesim.components.deployment.common import DeploymentResult, make_servers, run_context
from kubesim.config import ABTestingConfig, replicas_of
from kubesim.core.entity import Server, ServerStatus, Version
from kubesim.core.log import LogLine, LogType
from kubesim.core.state import DeploymentSimState, Phase

logger = logging.getLogger(__name__)

ERROR_STEP = 5.0
MAX_ERROR_RATE = 20.0


def variant_servers(config: ABTestingConfig, run_tick: int = 0) -> list[Server]:
    """Servers for both variants: ``max(1, replicas // 2)`` for A, the rest (at least 1) for B."""
    replicas = replicas_of(config)
    a_count = max(1, replicas // 2)
    b_count = max(1, replicas - a_count)
    return make_servers(a_count, "a", Version.V1, ServerStatus.RUNNING, run_tick, label="variant-a") + make_servers(
        b_count, "b", Version.V2, ServerStatus.RUNNING, run_tick, label="variant-b"
    )


def ab_testing_tick(state: DeploymentSimState, config: ABTestingConfig) -> DeploymentResult:
    """Compute the A/B testing state for ``state.tick``."""
    ctx = run_context(state.events, state.tick)
    if ctx is None:
        return DeploymentResult.from_state(state)

    servers = list(state.servers)
    v1, v2 = state.v1_traffic, state.v2_traffic
    error_rate = state.error_rate
    phase = state.phase
    logs: list[LogLine] = []

    if ctx.ticks_since_deploy == 1:
        servers = variant_servers(config, ctx.anchor.tick)
        v1, v2 = float(config.v1_percent), float(config.v2_percent)
        error_rate = 0.0
        phase = Phase.MONITORING
        logs.append(
            LogLine(f"A/B test started. A: {config.v1_percent:g}% / B: {config.v2_percent:g}%", LogType.ACTION)
        )

    if ctx.error_fired:
        error_rate = min(error_rate + ERROR_STEP, MAX_ERROR_RATE)
        logs.append(LogLine(f"Variant B showing errors: {error_rate:g}%", LogType.ERROR))

    if ctx.rollback_fired and phase is not Phase.ROLLING_BACK:
        servers = [
            s.with_status(ServerStatus.RUNNING) for s in servers if s.version is Version.V1 and not s.is_shadow
        ] or make_servers(replicas_of(config), "a", Version.V1, ServerStatus.RUNNING, state.tick, label="variant-a")
        v1, v2 = 100.0, 0.0
        error_rate = 0.0
        phase = Phase.ROLLING_BACK
        logs.append(LogLine("A/B test ended. Promoting Variant A (v1).", LogType.ACTION))
        logger.info("[ab-testing] experiment concluded at tick %d, variant A promoted", state.tick)

    return DeploymentResult(
        servers=tuple(servers),
        v1_traffic=v1,
        v2_traffic=v2,
        error_rate=error_rate,
        phase=phase,
        logs=logs,
    )
