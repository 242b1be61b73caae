"""End-to-end scenarios driven through the public API.

Each test plays a short story (spike, deploy, failure, rollback) through
``create_simulation`` and checks what a user watching the simulation would
see: replica counts, traffic split, phase and narration log.
"""

import random

import pytest

from kubesim import create_simulation
from kubesim.config import HPAConfig, KEDAConfig, RecreateConfig, SimulationKind
from kubesim.core.entity import PodStatus
from kubesim.core.state import Phase


def messages(state):
    return [e.message for e in state.logs]


class TestHorizontalScaling:
    def test_spike_scales_out_with_pending_pods(self, drive):
        states = drive("hpa", events={0: ["traffic_spike_5x"]}, ticks=15)

        first = states[1]
        assert first.traffic == 250
        assert len(first.pods) == 3
        assert [p.status for p in first.pods].count(PodStatus.PENDING) == 1
        assert any("Scaling 2 -> 3" in m for m in messages(first))

        assert all(p.is_running for p in states[2].pods[:3])
        assert 4 <= len(states[15].pods) <= 10

    def test_scale_down_is_gradual_after_cool_down(self, drive):
        config = HPAConfig(scale_down_delay=5)
        states = drive("hpa", config, events={0: ["traffic_spike_5x"], 15: ["cool_down"]}, ticks=60)

        counts = [sum(1 for p in s.pods if p.status is not PodStatus.TERMINATING) for s in states]
        drops = [i for i in range(16, len(counts)) if counts[i] < counts[i - 1]]

        assert drops, "expected the fleet to shrink after cooling down"
        assert all(counts[i - 1] - counts[i] == 1 for i in drops)
        assert all(b - a >= config.scale_down_delay for a, b in zip(drops, drops[1:]))
        assert counts[-1] < max(counts)

    def test_pod_crash_is_replaced(self, drive):
        states = drive("hpa", HPAConfig(initial_pods=3, min_pods=3), events={2: ["pod_crash"]}, ticks=6)

        assert any("crashed! Replacement needed." in m for m in messages(states[3]))
        assert len(states[6].pods) >= 3


class TestEventDrivenScaling:
    def test_scale_to_zero_and_back(self, drive):
        states = drive("keda", KEDAConfig(), events={20: ["queue_burst"]}, ticks=150)

        assert not any(p.is_running for p in states[19].pods)
        assert states[19].metrics.queue_depth == 0
        assert any("Scaling to zero" in e.message for s in states[:20] for e in s.logs)

        peak = max(len(s.pods) for s in states[20:60])
        assert peak == 10
        assert states[150].queue_depth == 0
        assert states[150].pods == ()

    def test_queue_reported_in_metrics(self, drive):
        states = drive("keda", events={1: ["queue_burst"]}, ticks=3)
        assert states[2].metrics.queue_depth > 0


class TestClusterScaling:
    def test_spike_adds_nodes_which_take_pending_pods(self, drive):
        states = drive("cluster", events={0: ["traffic_spike_5x"]}, ticks=10)

        assert any(p.status is PodStatus.PENDING for p in states[1].pods)
        assert len(states[1].nodes) > len(states[0].nodes)
        assert all(n.is_ready for n in states[6].nodes)
        assert not any(p.status is PodStatus.PENDING for p in states[6].pods)


class TestVerticalScaling:
    def test_requests_follow_load(self, drive):
        states = drive("vpa", events={0: ["traffic_spike_5x"]}, ticks=10)

        assert states[10].requests.cpu_millis > states[0].requests.cpu_millis
        assert len(states[10].pods) == 2
        assert any("Evicting" in m for m in messages(states[10]))


class TestDeployments:
    def test_canary_error_rolls_back_on_the_same_tick(self, drive):
        states = drive("canary", events={0: ["deploy_v2"], 5: ["inject_error"]})

        before, after = states[5], states[6]
        assert before.v2_traffic == 5
        assert after.phase is Phase.ROLLING_BACK
        assert after.v2_traffic == 0
        assert after.error_rate == 0

    def test_recreate_downtime_matches_startup_time(self, drive):
        config = RecreateConfig(startup_time=4, shutdown_grace=1)
        states = drive("recreate", config, events={0: ["deploy_v2"]}, ticks=12)

        down = [s.tick for s in states if s.v1_traffic == 0 and s.v2_traffic == 0]
        assert down == [2, 3, 4, 5]
        assert states[6].phase is Phase.COMPLETE
        assert states[5].metrics.availability < 100

    def test_rollback_is_idempotent(self, drive):
        events = {0: ["deploy_v2"], 8: ["trigger_rollback"], 9: ["trigger_rollback"]}
        states = drive("blue-green", events=events, ticks=12)

        assert states[9].phase is Phase.ROLLING_BACK
        assert states[12].servers == states[9].servers
        assert (states[12].v1_traffic, states[12].v2_traffic) == (100, 0)
        rollbacks = [m for m in messages(states[12]) if m.startswith("Manual rollback")]
        assert len(rollbacks) == 1

    @pytest.mark.parametrize("kind", ["blue-green", "canary", "rolling", "recreate", "ab-testing", "shadow"])
    def test_traffic_split_is_a_percentage(self, kind, drive):
        events = {0: ["deploy_v2"], 6: ["inject_error"], 12: ["trigger_rollback"]}
        states = drive(kind, events=events, ticks=25)

        for state in states:
            assert 0 <= state.v1_traffic <= 100
            assert 0 <= state.v2_traffic <= 100
            assert state.v1_traffic + state.v2_traffic in (0, 100)
            assert 0 <= state.error_rate <= 100


class TestInvariants:
    @pytest.mark.parametrize("kind", [k.value for k in SimulationKind])
    def test_random_event_storm(self, kind):
        sim = create_simulation(kind, seed=11)
        chooser = random.Random(5)
        family_events = (
            ["traffic_spike_2x", "traffic_spike_5x", "gradual_ramp", "pod_crash", "cool_down", "queue_burst"]
            if kind in ("hpa", "vpa", "cluster", "keda")
            else ["deploy_v2", "inject_error", "trigger_rollback"]
        )

        for expected_tick in range(1, 80):
            if chooser.random() < 0.2:
                sim.trigger_event(chooser.choice(family_events))
            state = sim.tick()

            assert state.tick == expected_tick
            assert len(state.logs) <= 50
            assert 0 <= state.metrics.availability <= 100
            assert state.metrics.pod_count >= 1
            assert len({e.id for e in state.logs}) == len(state.logs)
            assert len({e.id for e in state.entities}) == len(state.entities)
