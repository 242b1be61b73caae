"""kubesim: tick-based simulations of Kubernetes autoscaling and deployment strategies.

Quick start::

    import kubesim

    sim = kubesim.create_simulation("canary", seed=1)
    sim.trigger_event("deploy_v2")
    state = sim.step(20)
    print(state.phase, state.v2_traffic)

The library is silent by default; call :func:`enable_console_logging` or
:func:`configure_from_env` to see what the engine does.
"""

import logging

logging.getLogger("kubesim").addHandler(logging.NullHandler())

from kubesim.config import (
    ABTestingConfig,
    BlueGreenConfig,
    CanaryConfig,
    ClusterConfig,
    ConfigError,
    EngineSettings,
    HPAConfig,
    KEDAConfig,
    RecreateConfig,
    RollingConfig,
    ShadowConfig,
    SimulationKind,
    VPAConfig,
    config_from_dict,
    default_config,
    get_preset,
)
from kubesim.core import (
    DeploymentEventType,
    DeploymentSimState,
    LogEntry,
    LogType,
    Phase,
    PodStatus,
    ScalingEventType,
    ScalingSimState,
    ServerStatus,
    SimEvent,
    Version,
)
from kubesim.hints import Hint, HintType, get_hints
from kubesim.instrumentation import LiveMetrics, history_frame, plot_history
from kubesim.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_logging,
    set_level,
    set_module_level,
)
from kubesim.simulation import Simulation, create_simulation

__version__ = "0.1.0"

__all__ = [
    # Driver
    "Simulation",
    "create_simulation",
    # Config
    "ABTestingConfig",
    "BlueGreenConfig",
    "CanaryConfig",
    "ClusterConfig",
    "ConfigError",
    "EngineSettings",
    "HPAConfig",
    "KEDAConfig",
    "RecreateConfig",
    "RollingConfig",
    "ShadowConfig",
    "SimulationKind",
    "VPAConfig",
    "config_from_dict",
    "default_config",
    "get_preset",
    # State
    "DeploymentEventType",
    "DeploymentSimState",
    "LogEntry",
    "LogType",
    "Phase",
    "PodStatus",
    "ScalingEventType",
    "ScalingSimState",
    "ServerStatus",
    "SimEvent",
    "Version",
    # Hints
    "Hint",
    "HintType",
    "get_hints",
    # Instrumentation
    "LiveMetrics",
    "history_frame",
    "plot_history",
    # Logging
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]
