"""Pure tick functions for the autoscaling simulations."""

from kubesim.components.scaling.cluster import cluster_desired_nodes, cluster_tick
from kubesim.components.scaling.common import JitterSource, ScalingResult
from kubesim.components.scaling.hpa import hpa_desired_replicas, hpa_tick
from kubesim.components.scaling.keda import keda_desired_replicas, keda_tick
from kubesim.components.scaling.traffic import apply_traffic_event, next_traffic
from kubesim.components.scaling.vpa import vpa_recommend, vpa_tick

__all__ = [
    "JitterSource",
    "ScalingResult",
    "apply_traffic_event",
    "cluster_desired_nodes",
    "cluster_tick",
    "hpa_desired_replicas",
    "hpa_tick",
    "keda_desired_replicas",
    "keda_tick",
    "next_traffic",
    "vpa_recommend",
    "vpa_tick",
]
