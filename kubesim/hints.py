"""Configuration hints.

Rule-based advice about a configuration: good choices, risky ones, and
combinations that cannot work. Hints never raise; an invalid combination is
reported as a warning.

Example::

    for hint in get_hints(HPAConfig(cpu_target=80)):
        print(hint.type.value, hint.message)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from kubesim.config import (
    ABTestingConfig,
    BlueGreenConfig,
    CanaryConfig,
    ClusterConfig,
    Config,
    HPAConfig,
    KEDAConfig,
    RecreateConfig,
    RollingConfig,
    ShadowConfig,
    VPAConfig,
)


class HintType(Enum):
    TIP = "tip"
    WARNING = "warning"
    SUCCESS = "success"


@dataclass(frozen=True)
class Hint:
    """One piece of advice. ``id`` is unique within one ``get_hints`` call."""

    id: str
    type: HintType
    message: str


class _HintList:
    """Collects hints and numbers them from 1."""

    def __init__(self) -> None:
        self.hints: list[Hint] = []

    def add(self, hint_type: HintType, message: str) -> None:
        self.hints.append(Hint(f"hint-{len(self.hints) + 1}", hint_type, message))

    def tip(self, message: str) -> None:
        self.add(HintType.TIP, message)

    def warning(self, message: str) -> None:
        self.add(HintType.WARNING, message)

    def success(self, message: str) -> None:
        self.add(HintType.SUCCESS, message)


def _hpa(config: HPAConfig, out: _HintList) -> None:
    if config.cpu_target > 70:
        out.warning("CPU target > 70% is aggressive. Leaves no headroom for spikes before scaling kicks in.")
    elif config.cpu_target < 40:
        out.tip("CPU target < 40% will keep many pods running. Good responsiveness, but higher cost.")
    elif 50 <= config.cpu_target <= 65:
        out.success("CPU target 50-65% is well-balanced for most web workloads.")

    if config.scale_down_delay < 3:
        out.warning('Short scale-down delay causes "flapping": pods scale down then immediately back up.')
    elif 5 <= config.scale_down_delay <= 10:
        out.success("Good scale-down delay. Prevents oscillation without wasting resources.")

    if config.max_pods < 5:
        out.warning("Low max pod cap may cause request drops during traffic spikes.")
    if config.min_pods > config.max_pods:
        out.warning("Min pods exceeds max pods. The replica bounds are inconsistent.")
    elif config.min_pods == config.max_pods:
        out.warning("Min pods equals max pods. Autoscaling is effectively disabled.")
    if config.initial_pods > config.max_pods:
        out.warning("Initial pods exceeds max. HPA will immediately try to scale down.")


def _vpa(config: VPAConfig, out: _HintList) -> None:
    if config.update_mode == "Off":
        out.tip("Update mode \"Off\" means VPA only recommends; it won't auto-resize. Good for observing first.")
    if config.initial_cpu_millis > config.max_cpu_millis * 0.8:
        out.warning("Initial CPU is near max limit. VPA has little room to scale up.")
    if config.max_memory_mi < 1024:
        out.tip("Max memory < 1Gi can cause OOMKills for memory-intensive apps like Java.")
    if config.initial_cpu_millis < 250:
        out.tip("Low initial CPU (< 250m) means slow startup. Good for batch jobs, risky for user-facing services.")


def _cluster(config: ClusterConfig, out: _HintList) -> None:
    if config.provisioning_time > 120:
        out.warning("Node provisioning > 2 minutes. Pods will be pending a long time during spikes.")
    if config.scale_down_threshold < 30:
        out.tip("Very low scale-down threshold (< 30%) keeps nodes running even when mostly idle.")
    elif config.scale_down_threshold > 70:
        out.warning("High scale-down threshold (> 70%) aggressively removes nodes. Risk of re-provisioning churn.")
    if config.pods_per_node > 12:
        out.tip("Many pods per node. A single node failure impacts more workloads.")
    if config.max_nodes <= config.min_nodes:
        out.warning("Max nodes equals min. Cluster autoscaling is effectively disabled.")


def _keda(config: KEDAConfig, out: _HintList) -> None:
    if config.min_pods == 0:
        out.tip("Scale-to-zero enabled! First message will have cold-start latency (~5-15s).")
    if config.queue_threshold < 2:
        out.warning("Very low queue threshold. Even 1 message triggers a pod. May cause over-scaling.")
    elif config.queue_threshold > 20:
        out.tip("High threshold means fewer pods but higher per-pod load. Good for batch processing.")
    if config.cooldown_period < 3:
        out.warning("Short cooldown risks scale-to-zero flapping during intermittent traffic.")
    if config.polling_interval > 30:
        out.tip("Long polling interval (> 30s) means slower reaction to queue spikes.")
    if config.min_pods > config.max_pods:
        out.warning("Min pods exceeds max pods. The replica bounds are inconsistent.")


def _canary(config: CanaryConfig, out: _HintList) -> None:
    if config.stages and config.stages[0] > 10:
        out.warning("Starting canary at > 10% is risky. Netflix starts at 2%.")
    elif config.stages and config.stages[0] <= 5:
        out.success("Conservative first stage. Limits blast radius during rollout.")
    if config.stages and config.stages[-1] < 100:
        out.warning("Last stage is below 100%. The canary will never be fully promoted.")
    if config.stage_duration < 3:
        out.warning("Short stage duration may miss slow-manifesting bugs.")
    if config.error_threshold > 5:
        out.warning("High error threshold (> 5%) means tolerating significant errors before rollback.")
    elif config.error_threshold <= 2:
        out.success("Tight error threshold. Will catch problems quickly.")


def _blue_green(config: BlueGreenConfig, out: _HintList) -> None:
    if config.health_check_duration < 2:
        out.warning("Short health check may not catch startup issues. Risk of switching to unhealthy env.")
    if config.rollback_threshold > 5:
        out.warning("High rollback threshold. Users may see errors before auto-rollback triggers.")
    if config.replicas < 2:
        out.tip("Single replica blue-green means no redundancy in either environment.")


def _rolling(config: RollingConfig, out: _HintList) -> None:
    if config.max_unavailable > 1 and config.replicas <= 3:
        out.warning("maxUnavailable > 1 with few replicas means significant capacity loss during rollout.")
    if config.max_surge == 0 and config.max_unavailable == 0:
        out.warning("Both maxSurge and maxUnavailable at 0 means no progress is possible!")
    if config.max_surge > 2:
        out.tip("High maxSurge speeds up rollout but temporarily doubles resource usage.")


def _recreate(config: RecreateConfig, out: _HintList) -> None:
    out.warning(
        "Recreate strategy causes downtime between shutdown and startup. Not for production-critical services."
    )
    if config.startup_time > 5:
        out.tip("Long startup time means extended downtime window. Consider rolling update instead.")


def _ab_testing(config: ABTestingConfig, out: _HintList) -> None:
    if config.v1_percent + config.v2_percent != 100:
        out.warning("Traffic split should add up to 100%.")
    if config.v2_percent > 50:
        out.tip("Sending > 50% to v2 means it's the primary. Are you sure v2 is ready?")


def _shadow(config: ShadowConfig, out: _HintList) -> None:
    if config.mirror_percent == 100:
        out.success("Mirroring 100% of traffic gives complete comparison data.")
    elif config.mirror_percent < 50:
        out.tip("Low mirror percentage may miss edge cases. Consider 100% for full validation.")
    out.tip("Shadow mode must disable ALL write paths in the shadow: DB, cache, queues, external APIs.")


_RULES: dict[type, Callable[[Config, _HintList], None]] = {
    HPAConfig: _hpa,
    VPAConfig: _vpa,
    ClusterConfig: _cluster,
    KEDAConfig: _keda,
    CanaryConfig: _canary,
    BlueGreenConfig: _blue_green,
    RollingConfig: _rolling,
    RecreateConfig: _recreate,
    ABTestingConfig: _ab_testing,
    ShadowConfig: _shadow,
}


def get_hints(config: Config) -> list[Hint]:
    """Return advice for ``config``.

    Raises:
        TypeError: If ``config`` is not a simulation config.
    """
    rules = _RULES.get(type(config))
    if rules is None:
        raise TypeError(f"No hints for {type(config).__name__}")
    out = _HintList()
    rules(config, out)
    return out.hints
