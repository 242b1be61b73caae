"""Unit tests for the Horizontal Pod Autoscaler tick function."""

from kubesim.components.scaling.common import new_pods
from kubesim.components.scaling.hpa import (
    average_utilization,
    hpa_desired_replicas,
    hpa_tick,
    scale_up_limit,
)
from kubesim.config import HPAConfig
from kubesim.core.entity import PodStatus
from kubesim.core.log import LogType


def running_pods(count, rng):
    return new_pods(count, 0, rng, status=PodStatus.RUNNING, cpu=30)


class TestDesiredReplicas:
    def test_formula(self):
        assert hpa_desired_replicas(2, 90, HPAConfig()) == 3
        assert hpa_desired_replicas(2, 95, HPAConfig()) == 4

    def test_clamped_to_max(self):
        assert hpa_desired_replicas(10, 95, HPAConfig(max_pods=10)) == 10

    def test_clamped_to_min(self):
        assert hpa_desired_replicas(3, 1, HPAConfig(min_pods=2)) == 2

    def test_zero_target_keeps_current(self):
        assert hpa_desired_replicas(4, 80, HPAConfig(cpu_target=0)) == 4


class TestScaleUpLimit:
    def test_half_of_current_rounded_up(self):
        assert scale_up_limit(4) == 2
        assert scale_up_limit(5) == 3

    def test_at_least_one(self):
        assert scale_up_limit(1) == 1
        assert scale_up_limit(0) == 1


class TestAverageUtilization:
    def test_capped_at_95(self, zero_jitter):
        assert average_utilization(1000, 1, zero_jitter) == 95

    def test_zero_running_pods_counts_as_one(self, zero_jitter):
        assert average_utilization(50, 0, zero_jitter) == 40


class TestHpaTick:
    def test_scale_up_adds_pending_pod(self, zero_jitter):
        result = hpa_tick(running_pods(2, zero_jitter), 250, HPAConfig(), 0, zero_jitter, tick=1)

        assert result.avg_cpu == 95
        assert len(result.pods) == 3
        assert result.pods[-1].status is PodStatus.PENDING
        assert result.pods[-1].id == "pod-1-0"
        assert result.scale_down_timer == 0
        assert result.logs[0].type is LogType.ACTION
        assert "Scaling 2 -> 3" in result.logs[0].message

    def test_pending_pod_runs_next_tick(self, zero_jitter):
        first = hpa_tick(running_pods(2, zero_jitter), 250, HPAConfig(), 0, zero_jitter, tick=1)
        second = hpa_tick(first.pods, 250, HPAConfig(), 0, zero_jitter, tick=2)

        assert all(p.status is not PodStatus.PENDING for p in second.pods[:3])
        assert sum(1 for p in second.pods if p.is_running) == 3

    def test_running_pods_get_spread_cpu(self, zero_jitter):
        result = hpa_tick(running_pods(2, zero_jitter), 250, HPAConfig(), 0, zero_jitter, tick=1)
        # 95 minus half of the spread
        assert result.pods[0].cpu == 90

    def test_scale_down_waits_for_delay(self, zero_jitter):
        pods = running_pods(4, zero_jitter)
        result = hpa_tick(pods, 50, HPAConfig(), 0, zero_jitter, tick=1)

        assert result.scale_down_timer == 1
        assert all(p.is_running for p in result.pods)

    def test_scale_down_removes_one_pod_after_delay(self, zero_jitter):
        pods = running_pods(4, zero_jitter)
        result = hpa_tick(pods, 50, HPAConfig(scale_down_delay=5), 4, zero_jitter, tick=1)

        assert result.scale_down_timer == 0
        statuses = [p.status for p in result.pods]
        assert statuses.count(PodStatus.TERMINATING) == 1
        assert result.pods[-1].status is PodStatus.TERMINATING
        assert "Scale-down: 4 -> 3" in result.logs[0].message

    def test_terminating_pod_removed_next_tick(self, zero_jitter):
        pods = running_pods(4, zero_jitter)
        first = hpa_tick(pods, 50, HPAConfig(scale_down_delay=1), 0, zero_jitter, tick=1)
        second = hpa_tick(first.pods, 50, HPAConfig(scale_down_delay=100), 0, zero_jitter, tick=2)

        assert len(second.pods) == 3

    def test_steady_load_resets_timer(self, zero_jitter):
        pods = running_pods(1, zero_jitter)
        result = hpa_tick(pods, 10, HPAConfig(), 3, zero_jitter, tick=1)

        assert result.scale_down_timer == 0
        assert len(result.pods) == 1

    def test_never_below_min(self, zero_jitter):
        pods = running_pods(2, zero_jitter)
        result = hpa_tick(pods, 5, HPAConfig(min_pods=2, scale_down_delay=1), 0, zero_jitter, tick=1)

        assert all(p.is_running for p in result.pods)

    def test_cooldown_progress_logged_every_third_tick(self, zero_jitter):
        pods = running_pods(4, zero_jitter)
        logged = hpa_tick(pods, 50, HPAConfig(), 0, zero_jitter, tick=3)
        quiet = hpa_tick(pods, 50, HPAConfig(), 0, zero_jitter, tick=4)

        assert "Scale-down cooldown: 1/5" in logged.logs[0].message
        assert quiet.logs == []


def run_constant_load(traffic, config, rng, ticks=40):
    pods, timer = running_pods(config.initial_pods, rng), 0
    results = []
    for tick in range(1, ticks + 1):
        result = hpa_tick(pods, traffic, config, timer, rng, tick=tick)
        pods, timer = result.pods, result.scale_down_timer
        results.append(result)
    return results


def live_count(result):
    return sum(1 for p in result.pods if p.status is not PodStatus.TERMINATING)


class TestConvergence:
    def test_constant_load_settles_at_target(self, zero_jitter):
        config = HPAConfig(cpu_target=60)
        results = run_constant_load(250, config, zero_jitter)

        settled = {live_count(r) for r in results[-15:]}
        assert settled == {4}
        assert all(r.avg_cpu == 50 for r in results[-15:])
        assert results[-1].avg_cpu <= config.cpu_target
        assert average_utilization(250, 3, zero_jitter) > config.cpu_target

    def test_replicas_stay_within_bounds(self, zero_jitter):
        config = HPAConfig(initial_pods=6, min_pods=3, max_pods=8)
        for traffic in (5, 250, 2000):
            for result in run_constant_load(traffic, config, zero_jitter):
                assert config.min_pods <= live_count(result) <= config.max_pods

    def test_max_pods_cap_binds(self, zero_jitter):
        config = HPAConfig(max_pods=6)
        results = run_constant_load(2000, config, zero_jitter)

        assert max(live_count(r) for r in results) == 6
        assert {live_count(r) for r in results[-20:]} == {6}
        assert results[-1].avg_cpu == 95
