"""Unit tests for derived metrics."""

import math

import pytest

from kubesim.components.scaling.common import new_pods
from kubesim.core.entity import PodStatus, Server, ServerStatus, Version
from kubesim.instrumentation.metrics import (
    BASE_LATENCY_MS,
    MAX_LATENCY_MS,
    calculate_deployment_metrics,
    calculate_scaling_metrics,
    cost_per_hour,
    latency_ms,
)


class TestLatency:
    def test_no_load_is_base(self):
        assert latency_ms(0, 1.5) == BASE_LATENCY_MS

    def test_grows_superlinearly(self):
        low = latency_ms(80, 1.5)
        high = latency_ms(160, 1.5)
        assert low == 24
        assert high - BASE_LATENCY_MS > 2 * (low - BASE_LATENCY_MS)

    def test_capped(self):
        assert latency_ms(1e9, 1.5) == MAX_LATENCY_MS


class TestCost:
    def test_five_cents_per_pod(self):
        assert cost_per_hour(3) == 0.15
        assert cost_per_hour(0) == 0


class TestScalingMetrics:
    def test_basic(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, status=PodStatus.RUNNING)
        m = calculate_scaling_metrics(pods, 50, 10, 40, None, 5, 5)

        assert m.pod_count == 2
        assert m.max_pods == 10
        assert m.cost_per_hour == 0.1
        assert m.availability == 100
        assert m.traffic == 50

    def test_no_running_pods_counts_as_one(self, zero_jitter):
        m = calculate_scaling_metrics([], 50, 10, 40, 0, 0, 1)

        assert m.pod_count == 1
        assert not math.isnan(m.latency_ms)
        assert m.availability == 0

    def test_pending_pods_reduce_availability(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, status=PodStatus.RUNNING) + new_pods(2, 1, zero_jitter)
        m = calculate_scaling_metrics(pods, 50, 10, 40, None, 10, 10)
        assert m.availability == 90

    def test_overload_reduces_availability(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, status=PodStatus.RUNNING)
        m = calculate_scaling_metrics(pods, 50, 10, 95, None, 10, 10)
        assert m.availability == 90

    def test_availability_bounds(self, zero_jitter):
        pods = new_pods(10, 1, zero_jitter)
        m = calculate_scaling_metrics(pods, 50, 10, 95, None, 0, 3)
        assert m.availability == 0

    def test_first_tick_is_fully_available(self):
        m = calculate_scaling_metrics([], 50, 10, 95, None, 0, 0)
        assert m.availability == 100


class TestDeploymentMetrics:
    def servers(self, count, **kwargs):
        return [Server(f"s-{i}", f"s-{i}", **kwargs) for i in range(count)]

    def test_basic(self):
        m = calculate_deployment_metrics(self.servers(4), 100, 0, 0, 10, 10)

        assert m.pod_count == 4
        assert m.cpu_percent == 50
        assert m.availability == 100
        assert m.cost_per_hour == 0.2

    def test_error_rate_reduces_availability(self):
        m = calculate_deployment_metrics(self.servers(4), 100, 0, 15, 10, 10)
        assert m.availability == 85

    def test_recreate_downtime_does_not_break(self):
        servers = self.servers(3, version=Version.V2, status=ServerStatus.DEPLOYING)
        m = calculate_deployment_metrics(servers, 0, 0, 100, 2, 4)

        assert m.pod_count == 1
        assert m.traffic == 0
        assert m.availability == 0
        assert m.max_pods == 3

    @pytest.mark.parametrize("error_rate", [0, 5, 50, 100])
    def test_availability_in_range(self, error_rate):
        m = calculate_deployment_metrics(self.servers(2), 100, 0, error_rate, 3, 7)
        assert 0 <= m.availability <= 100
