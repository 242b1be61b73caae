"""Unit tests for the event-driven autoscaler tick function."""

from kubesim.components.scaling.common import new_pods
from kubesim.components.scaling.keda import is_poll_tick, keda_desired_replicas, keda_tick
from kubesim.config import KEDAConfig
from kubesim.core.entity import PodStatus
from kubesim.core.log import LogType


class TestDesiredReplicas:
    def test_empty_queue_scales_to_zero_when_allowed(self):
        assert keda_desired_replicas(0, KEDAConfig(min_pods=0)) == 0

    def test_empty_queue_respects_min(self):
        assert keda_desired_replicas(0, KEDAConfig(min_pods=1)) == 1

    def test_ceil_of_queue_over_threshold(self):
        assert keda_desired_replicas(12, KEDAConfig(queue_threshold=5)) == 3

    def test_capped_at_max(self):
        assert keda_desired_replicas(500, KEDAConfig(max_pods=10)) == 10


class TestPolling:
    def test_first_tick_always_polls(self):
        assert is_poll_tick(1, KEDAConfig(polling_interval=5))

    def test_polls_on_interval(self):
        config = KEDAConfig(polling_interval=2)
        assert is_poll_tick(2, config)
        assert not is_poll_tick(3, config)
        assert is_poll_tick(4, config)


class TestKedaTick:
    def test_scale_up_from_zero(self, zero_jitter):
        result = keda_tick([], 20, KEDAConfig(), 0, zero_jitter, tick=1)

        assert len(result.pods) == 4
        assert all(p.status is PodStatus.PENDING for p in result.pods)
        assert all(p.id.startswith("worker-1-") for p in result.pods)
        assert result.logs[0].type is LogType.ACTION
        assert "Scaling 0 -> 4" in result.logs[0].message

    def test_cpu_capped(self, zero_jitter):
        result = keda_tick([], 20, KEDAConfig(), 0, zero_jitter, tick=1)
        assert result.avg_cpu == 95

    def test_no_action_between_polls(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, prefix="worker")
        result = keda_tick(pods, 500, KEDAConfig(polling_interval=2), 0, zero_jitter, tick=3)

        assert len(result.pods) == 2
        assert all(p.is_running for p in result.pods)
        assert result.logs == []

    def test_scale_down_waits_for_cooldown(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, prefix="worker", status=PodStatus.RUNNING)
        result = keda_tick(pods, 0, KEDAConfig(cooldown_period=5), 1, zero_jitter, tick=2)

        assert result.scale_down_timer == 2
        assert all(p.is_running for p in result.pods)
        assert "Cooldown 2/5" in result.logs[0].message

    def test_scale_to_zero(self, zero_jitter):
        pods = new_pods(2, 0, zero_jitter, prefix="worker", status=PodStatus.RUNNING)
        result = keda_tick(pods, 0, KEDAConfig(cooldown_period=5), 4, zero_jitter, tick=2)

        assert all(p.status is PodStatus.TERMINATING for p in result.pods)
        assert result.scale_down_timer == 0
        assert result.logs[0].message == "KEDA: Queue empty. Scaling to zero."

        after = keda_tick(result.pods, 0, KEDAConfig(cooldown_period=5), 0, zero_jitter, tick=3)
        assert after.pods == ()

    def test_scale_up_resets_cooldown(self, zero_jitter):
        result = keda_tick([], 10, KEDAConfig(), 3, zero_jitter, tick=2)
        assert result.scale_down_timer == 0
