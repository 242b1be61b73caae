"""Strategy configuration, presets and engine settings.

Each simulation kind has one frozen config dataclass. Configs are plain
parameter bags: the engine never mutates them, and callers replace them
wholesale while a simulation is paused. Questionable combinations (for
example ``min_pods > max_pods``) are accepted here and reported by
:mod:`kubesim.hints` instead, so a simulation always remains computable.

Example:
    from kubesim.config import HPAConfig, config_from_dict, get_preset

    config = HPAConfig(cpu_target=70)
    config = config_from_dict("hpa", {"minPods": 1, "maxPods": 20})
    config = get_preset("canary", "conservative")
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Literal

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a config mapping cannot be turned into a config."""


class Family(Enum):
    """Simulation family: autoscaling or deployment."""

    SCALING = "scaling"
    DEPLOYMENT = "deployment"


class SimulationKind(Enum):
    """The ten simulations the engine knows how to run."""

    HPA = "hpa"
    VPA = "vpa"
    CLUSTER = "cluster"
    KEDA = "keda"
    BLUE_GREEN = "blue-green"
    CANARY = "canary"
    ROLLING = "rolling"
    RECREATE = "recreate"
    AB_TESTING = "ab-testing"
    SHADOW = "shadow"

    @property
    def family(self) -> Family:
        if self in (SimulationKind.HPA, SimulationKind.VPA, SimulationKind.CLUSTER, SimulationKind.KEDA):
            return Family.SCALING
        return Family.DEPLOYMENT

    @classmethod
    def parse(cls, kind: SimulationKind | str) -> SimulationKind:
        if isinstance(kind, SimulationKind):
            return kind
        try:
            return cls(kind.lower().replace("_", "-"))
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown simulation kind {kind!r}; expected one of: {valid}") from None


# Scaling configs


@dataclass(frozen=True)
class HPAConfig:
    """Horizontal Pod Autoscaler parameters.

    Attributes:
        initial_pods: Pods running at tick 0.
        min_pods: Lower replica bound.
        max_pods: Upper replica bound.
        cpu_target: Target average CPU utilization, percent.
        scale_down_delay: Consecutive under-target ticks before removing a pod.
    """

    initial_pods: int = 2
    min_pods: int = 1
    max_pods: int = 10
    cpu_target: float = 60
    scale_down_delay: int = 5


@dataclass(frozen=True)
class VPAConfig:
    """Vertical Pod Autoscaler parameters."""

    initial_cpu_millis: int = 500
    initial_memory_mi: int = 512
    max_cpu_millis: int = 4000
    max_memory_mi: int = 8192
    update_mode: Literal["Auto", "Off"] = "Auto"


@dataclass(frozen=True)
class ClusterConfig:
    """Cluster autoscaler parameters.

    Attributes:
        scale_down_threshold: Average node utilization percent below which
            one node is removed.
        provisioning_time: Ticks a new node spends provisioning.
    """

    min_nodes: int = 2
    max_nodes: int = 5
    pods_per_node: int = 8
    scale_down_threshold: float = 50
    provisioning_time: int = 3


@dataclass(frozen=True)
class KEDAConfig:
    """Event-driven (KEDA-style) autoscaler parameters.

    Attributes:
        queue_threshold: Messages one pod is expected to handle.
        cooldown_period: Polls that must agree before scaling down.
        polling_interval: Ticks between polls.
    """

    min_pods: int = 0
    max_pods: int = 10
    queue_threshold: int = 5
    cooldown_period: int = 5
    polling_interval: int = 2


# Deployment configs


@dataclass(frozen=True)
class BlueGreenConfig:
    replicas: int = 3
    health_check_duration: int = 3
    rollback_threshold: float = 5


@dataclass(frozen=True)
class CanaryConfig:
    """Canary rollout parameters.

    Attributes:
        stages: Percent of traffic sent to v2 at each stage.
        stage_duration: Ticks spent at each stage.
        error_threshold: Error rate percent that triggers a rollback.
    """

    stages: tuple[int, ...] = (5, 25, 50, 100)
    stage_duration: int = 5
    error_threshold: float = 3

    def __post_init__(self):
        # Accept lists from callers and mappings; keep the dataclass hashable.
        object.__setattr__(self, "stages", tuple(self.stages))


@dataclass(frozen=True)
class RollingConfig:
    replicas: int = 4
    max_surge: int = 1
    max_unavailable: int = 1
    readiness_delay: int = 2


@dataclass(frozen=True)
class RecreateConfig:
    replicas: int = 3
    startup_time: int = 3
    shutdown_grace: int = 2


@dataclass(frozen=True)
class ABTestingConfig:
    v1_percent: float = 50
    v2_percent: float = 50
    replicas: int = 4


@dataclass(frozen=True)
class ShadowConfig:
    mirror_percent: float = 100
    replicas: int = 3


ScalingConfig = HPAConfig | VPAConfig | ClusterConfig | KEDAConfig
DeploymentConfig = (
    BlueGreenConfig | CanaryConfig | RollingConfig | RecreateConfig | ABTestingConfig | ShadowConfig
)
Config = ScalingConfig | DeploymentConfig

CONFIG_TYPES: dict[SimulationKind, type] = {
    SimulationKind.HPA: HPAConfig,
    SimulationKind.VPA: VPAConfig,
    SimulationKind.CLUSTER: ClusterConfig,
    SimulationKind.KEDA: KEDAConfig,
    SimulationKind.BLUE_GREEN: BlueGreenConfig,
    SimulationKind.CANARY: CanaryConfig,
    SimulationKind.ROLLING: RollingConfig,
    SimulationKind.RECREATE: RecreateConfig,
    SimulationKind.AB_TESTING: ABTestingConfig,
    SimulationKind.SHADOW: ShadowConfig,
}

# Replica count used when a config has none (canary) or a rollback finds no
# v1 servers left to restore.
DEFAULT_REPLICAS = 3


def default_config(kind: SimulationKind | str) -> Config:
    """Return the default config for ``kind``."""
    return CONFIG_TYPES[SimulationKind.parse(kind)]()


def replicas_of(config: Config) -> int:
    """Fleet size a deployment config asks for."""
    return max(1, int(getattr(config, "replicas", DEFAULT_REPLICAS)))


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    key = key.replace("-", "_")
    # v1Percent -> v1_percent, maxCpuMillis -> max_cpu_millis
    return _CAMEL_RE.sub("_", key).lower()


def config_from_dict(kind: SimulationKind | str, values: Mapping[str, Any]) -> Config:
    """Build the config for ``kind`` from a mapping.

    Keys may be snake_case or camelCase. Missing keys take their defaults.

    Raises:
        ConfigError: If a key is unknown or a value has the wrong shape.
    """
    config_type = CONFIG_TYPES[SimulationKind.parse(kind)]
    known = {f.name for f in fields(config_type)}
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        name = _snake(key)
        if name not in known:
            raise ConfigError(
                f"Unknown {config_type.__name__} field {key!r}; expected one of: {', '.join(sorted(known))}"
            )
        kwargs[name] = value

    if "update_mode" in kwargs and kwargs["update_mode"] not in ("Auto", "Off"):
        raise ConfigError(f"update_mode must be 'Auto' or 'Off', got {kwargs['update_mode']!r}")
    if "stages" in kwargs:
        try:
            kwargs["stages"] = tuple(int(s) for s in kwargs["stages"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"stages must be a list of numbers, got {kwargs['stages']!r}") from exc

    return config_type(**kwargs)


def config_to_dict(config: Config) -> dict[str, Any]:
    """Field name to value mapping of ``config``."""
    result = {}
    for f in fields(config):
        value = getattr(config, f.name)
        result[f.name] = list(value) if isinstance(value, tuple) else value
    return result


# Presets from the configuration panel: conservative, balanced, aggressive.

PRESETS: dict[SimulationKind, dict[str, Config]] = {
    SimulationKind.HPA: {
        "conservative": HPAConfig(initial_pods=3, min_pods=2, max_pods=15, cpu_target=50, scale_down_delay=10),
        "balanced": HPAConfig(initial_pods=2, min_pods=1, max_pods=10, cpu_target=60, scale_down_delay=5),
        "aggressive": HPAConfig(initial_pods=1, min_pods=1, max_pods=20, cpu_target=80, scale_down_delay=2),
    },
    SimulationKind.KEDA: {
        "conservative": KEDAConfig(min_pods=1, max_pods=10, queue_threshold=10, cooldown_period=10, polling_interval=3),
        "balanced": KEDAConfig(min_pods=0, max_pods=10, queue_threshold=5, cooldown_period=5, polling_interval=2),
        "aggressive": KEDAConfig(min_pods=0, max_pods=30, queue_threshold=2, cooldown_period=2, polling_interval=1),
    },
    SimulationKind.BLUE_GREEN: {
        "conservative": BlueGreenConfig(replicas=3, health_check_duration=5, rollback_threshold=2),
        "balanced": BlueGreenConfig(replicas=3, health_check_duration=3, rollback_threshold=5),
        "aggressive": BlueGreenConfig(replicas=2, health_check_duration=1, rollback_threshold=10),
    },
    SimulationKind.CANARY: {
        "conservative": CanaryConfig(stages=(2, 10, 25, 50, 100), stage_duration=8, error_threshold=1),
        "balanced": CanaryConfig(stages=(5, 25, 50, 100), stage_duration=5, error_threshold=3),
        "aggressive": CanaryConfig(stages=(10, 50, 100), stage_duration=3, error_threshold=5),
    },
    SimulationKind.ROLLING: {
        "conservative": RollingConfig(replicas=4, max_surge=1, max_unavailable=0, readiness_delay=3),
        "balanced": RollingConfig(replicas=4, max_surge=1, max_unavailable=1, readiness_delay=2),
        "aggressive": RollingConfig(replicas=4, max_surge=2, max_unavailable=1, readiness_delay=1),
    },
    SimulationKind.RECREATE: {
        "conservative": RecreateConfig(replicas=3, startup_time=4, shutdown_grace=3),
        "balanced": RecreateConfig(replicas=3, startup_time=3, shutdown_grace=2),
        "aggressive": RecreateConfig(replicas=2, startup_time=1, shutdown_grace=1),
    },
}


def get_preset(kind: SimulationKind | str, name: str) -> Config:
    """Return a named preset.

    Raises:
        KeyError: If the kind has no preset with that name.
    """
    kind = SimulationKind.parse(kind)
    presets = PRESETS.get(kind, {})
    if name not in presets:
        available = ", ".join(presets) or "none"
        raise KeyError(f"No preset {name!r} for {kind.value}; available: {available}")
    return presets[name]


@dataclass(frozen=True)
class EngineSettings:
    """Engine-wide constants shared by every simulation kind.

    Attributes:
        base_interval_ms: Wall-clock milliseconds per tick at speed 1.
        base_traffic: Baseline request rate for scaling simulations.
        log_capacity: Narration log entries kept in state.
        history_length: Samples kept in the traffic and replica rings.
        event_lookback: Ticks after which a scaling event expires.
    """

    base_interval_ms: float = 400.0
    base_traffic: float = 50.0
    log_capacity: int = 50
    history_length: int = 50
    event_lookback: int = 60

    def __post_init__(self):
        if self.base_interval_ms <= 0:
            raise ValueError(f"base_interval_ms must be positive, got {self.base_interval_ms}")
        if self.event_lookback < 1:
            raise ValueError(f"event_lookback must be >= 1, got {self.event_lookback}")

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Read overrides from the environment.

        Environment variables:
            KUBESIM_BASE_INTERVAL_MS: Milliseconds per tick at speed 1.
            KUBESIM_BASE_TRAFFIC: Baseline traffic.
            KUBESIM_EVENT_LOOKBACK: Scaling event lifetime in ticks.
        """
        overrides: dict[str, Any] = {}
        for env_name, field_name, cast in (
            ("KUBESIM_BASE_INTERVAL_MS", "base_interval_ms", float),
            ("KUBESIM_BASE_TRAFFIC", "base_traffic", float),
            ("KUBESIM_EVENT_LOOKBACK", "event_lookback", int),
        ):
            raw = os.environ.get(env_name, "")
            if not raw:
                continue
            try:
                overrides[field_name] = cast(raw)
            except ValueError as exc:
                raise ConfigError(f"{env_name} must be a number, got {raw!r}") from exc
        if overrides:
            logger.debug("Engine settings from environment: %s", overrides)
        return cls(**overrides)
