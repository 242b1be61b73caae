"""Pure tick functions for the deployment strategy simulations."""

from kubesim.components.deployment.ab_testing import ab_testing_tick
from kubesim.components.deployment.blue_green import blue_green_tick
from kubesim.components.deployment.canary import canary_tick
from kubesim.components.deployment.common import DeploymentResult, RunContext, run_context
from kubesim.components.deployment.recreate import recreate_tick
from kubesim.components.deployment.rolling import rolling_tick
from kubesim.components.deployment.shadow import shadow_tick

__all__ = [
    "DeploymentResult",
    "RunContext",
    "ab_testing_tick",
    "blue_green_tick",
    "canary_tick",
    "recreate_tick",
    "rolling_tick",
    "run_context",
    "shadow_tick",
]
