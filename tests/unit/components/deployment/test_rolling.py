"""Unit tests for the rolling update."""

from kubesim.components.deployment.rolling import replaced_count, traffic_split
from kubesim.config import RollingConfig
from kubesim.core.entity import Server, ServerStatus, Version
from kubesim.core.log import LogType
from kubesim.core.state import Phase


def on_version(state, version, status=ServerStatus.RUNNING):
    return [s for s in state.servers if s.version is version and s.status is status]


class TestReplacedCount:
    def test_one_per_readiness_window(self):
        config = RollingConfig(replicas=4, readiness_delay=2)
        assert replaced_count(2, config) == 0
        assert replaced_count(3, config) == 1
        assert replaced_count(6, config) == 2

    def test_capped_at_replicas(self):
        assert replaced_count(100, RollingConfig(replicas=4)) == 4


class TestTrafficSplit:
    def test_split_by_running_servers(self):
        servers = [
            Server("a", "a", Version.V1),
            Server("b", "b", Version.V2),
            Server("c", "c", Version.V2, ServerStatus.DEPLOYING),
        ]
        assert traffic_split(servers, 100, 0) == (50, 50)

    def test_no_running_servers_keeps_split(self):
        servers = [Server("a", "a", Version.V1, ServerStatus.DRAINING)]
        assert traffic_split(servers, 70, 30) == (70, 30)


class TestRollout:
    def test_setup_drains_one_and_surges_one(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"]})

        state = states[1]
        assert state.phase is Phase.DEPLOYING
        assert len(on_version(state, Version.V1, ServerStatus.DRAINING)) == 1
        assert len(on_version(state, Version.V2, ServerStatus.DEPLOYING)) == 1
        assert state.v1_traffic == 100

    def test_progress_and_completion(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"]})

        assert len(on_version(states[3], Version.V2)) == 1
        assert (states[3].v1_traffic, states[3].v2_traffic) == (67, 33)
        assert len(on_version(states[6], Version.V2)) == 2

        final = states[12]
        assert final.phase is Phase.COMPLETE
        assert len(final.servers) == 4
        assert all(s.version is Version.V2 and s.is_running for s in final.servers)
        assert (final.v1_traffic, final.v2_traffic) == (0, 100)

    def test_zero_surge_and_unavailable_stalls(self, drive):
        config = RollingConfig(max_surge=0, max_unavailable=0)
        states = drive("rolling", config, events={0: ["deploy_v2"]})

        warnings = [e for e in states[1].logs if e.type is LogType.WARNING and e.tick == 1]
        assert "cannot progress" in warnings[0].message
        assert states[15].phase is Phase.DEPLOYING
        assert len(on_version(states[15], Version.V1)) == 4
        assert states[15].v2_traffic == 0


class TestErrors:
    def test_failing_v2_pauses_rollout(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"], 3: ["inject_error"]})

        state = states[4]
        assert state.error_rate == 12
        assert [s.id for s in on_version(state, Version.V2, ServerStatus.FAILING)] == ["v2-0-0", "surge-0-1"]
        assert any("Rollout paused" in e.message for e in state.logs)

        stuck = states[12]
        assert stuck.phase is Phase.DEPLOYING
        assert [s.id for s in stuck.servers if s.id.startswith("v2-")] == ["v2-0-0"]

    def test_rollback_restores_v1(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"], 4: ["trigger_rollback"]})

        state = states[5]
        assert state.phase is Phase.ROLLING_BACK
        assert len(state.servers) == 4
        assert all(s.version is Version.V1 and s.is_running for s in state.servers)
        assert [s.label for s in state.servers] == ["pod-v1-1", "pod-v1-2", "pod-v1-3", "pod-v1-4"]
        assert (state.v1_traffic, state.v2_traffic) == (100, 0)
        assert states[10].servers == state.servers

    def test_error_after_rollback_is_ignored(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"], 4: ["trigger_rollback"], 8: ["inject_error"]}, ticks=12)

        for state in states[9:]:
            assert state.phase is Phase.ROLLING_BACK
            assert state.error_rate == 0
            assert state.servers == states[5].servers
            assert state.metrics.availability >= states[8].metrics.availability

    def test_redeploy_after_rollback_restarts(self, drive):
        states = drive("rolling", events={0: ["deploy_v2"], 4: ["trigger_rollback"], 8: ["deploy_v2"]}, ticks=12)

        assert states[9].phase is Phase.DEPLOYING
        assert len(on_version(states[11], Version.V2)) == 1
