"""Unit tests for the blue-green deployment timeline."""

from kubesim.config import BlueGreenConfig
from kubesim.core.entity import ServerStatus, Version
from kubesim.core.state import Phase


def greens(state):
    return [s for s in state.servers if s.version is Version.V2]


def messages(state):
    return [e.message for e in state.logs]


class TestIdle:
    def test_nothing_happens_without_deploy(self, drive):
        states = drive("blue-green", ticks=10)

        assert states[10].phase is Phase.IDLE
        assert states[10].v1_traffic == 100
        assert states[10].servers == states[0].servers


class TestHappyPath:
    def test_greens_start_deploying(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"]})

        assert states[1].phase is Phase.DEPLOYING
        assert len(greens(states[1])) == 3
        assert all(s.status is ServerStatus.DEPLOYING for s in greens(states[1]))
        assert len([s for s in states[1].servers if s.version is Version.V1]) == 3

    def test_health_check_then_switch(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"]})

        assert all(s.is_running for s in greens(states[4]))
        assert (states[5].v1_traffic, states[5].v2_traffic) == (100, 0)
        assert (states[6].v1_traffic, states[6].v2_traffic) == (0, 100)
        assert states[6].phase is Phase.MONITORING

    def test_health_check_follows_config(self, drive):
        states = drive("blue-green", BlueGreenConfig(health_check_duration=1), events={0: ["deploy_v2"]})
        assert states[4].v2_traffic == 100


class TestRollback:
    def test_error_after_switch_auto_rolls_back(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"], 6: ["inject_error"]})

        state = states[7]
        assert state.phase is Phase.ROLLING_BACK
        assert (state.v1_traffic, state.v2_traffic) == (100, 0)
        assert state.error_rate == 0
        assert all(s.status is ServerStatus.STOPPED for s in greens(state))
        assert "Errors injected! Error rate: 15%" in messages(state)
        assert any("Auto-rolling back" in m for m in messages(state))

    def test_error_below_threshold_keeps_monitoring(self, drive):
        states = drive(
            "blue-green", BlueGreenConfig(rollback_threshold=20), events={0: ["deploy_v2"], 6: ["inject_error"]}
        )

        assert states[7].phase is Phase.MONITORING
        assert states[7].error_rate == 15

    def test_error_before_switch_aborts_at_health_check(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"], 1: ["inject_error"]})

        assert all(s.status is ServerStatus.FAILING for s in greens(states[2]))
        assert states[2].v2_traffic == 0
        assert states[4].phase is Phase.ROLLING_BACK
        assert states[4].v2_traffic == 0
        assert "Green health check failed. Staying on Blue (v1)." in messages(states[4])
        assert states[10].v2_traffic == 0

    def test_manual_rollback(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"], 8: ["trigger_rollback"]})

        assert states[8].v2_traffic == 100
        assert states[9].phase is Phase.ROLLING_BACK
        assert states[9].v1_traffic == 100
        assert "Manual rollback: Traffic switched back to Blue (v1)." in messages(states[9])

    def test_redeploy_starts_new_run(self, drive):
        states = drive("blue-green", events={0: ["deploy_v2"], 7: ["trigger_rollback"], 10: ["deploy_v2"]})

        state = states[11]
        assert state.phase is Phase.DEPLOYING
        new_greens = [s for s in greens(state) if s.status is ServerStatus.DEPLOYING]
        assert len(new_greens) == 3
        assert all(s.id.startswith("green-10-") for s in new_greens)
        assert states[16].phase is Phase.MONITORING
