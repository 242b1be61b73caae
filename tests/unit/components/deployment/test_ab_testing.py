"""Unit tests for A/B testing."""

from kubesim.components.deployment.ab_testing import variant_servers
from kubesim.config import ABTestingConfig
from kubesim.core.entity import Version
from kubesim.core.state import Phase


class TestVariantServers:
    def test_even_split(self):
        servers = variant_servers(ABTestingConfig(replicas=4))

        assert [s.label for s in servers] == ["variant-a-1", "variant-a-2", "variant-b-1", "variant-b-2"]
        assert [s.version for s in servers] == [Version.V1, Version.V1, Version.V2, Version.V2]

    def test_each_variant_gets_a_server(self):
        servers = variant_servers(ABTestingConfig(replicas=1))
        assert [s.version for s in servers] == [Version.V1, Version.V2]


class TestExperiment:
    def test_initial_state_uses_configured_split(self, drive):
        states = drive("ab-testing", ABTestingConfig(v1_percent=70, v2_percent=30), ticks=1)

        assert (states[0].v1_traffic, states[0].v2_traffic) == (70, 30)
        assert len(states[0].servers) == 4
        assert states[0].phase is Phase.IDLE

    def test_start(self, drive):
        states = drive("ab-testing", events={0: ["deploy_v2"]})

        assert states[1].phase is Phase.MONITORING
        assert (states[1].v1_traffic, states[1].v2_traffic) == (50, 50)
        assert states[10].phase is Phase.MONITORING

    def test_errors_accumulate_and_cap(self, drive):
        events = {0: ["deploy_v2"], 2: ["inject_error"], 3: ["inject_error"]}
        states = drive("ab-testing", events=events)

        assert states[3].error_rate == 5
        assert states[4].error_rate == 10

        many = {0: ["deploy_v2"], **{t: ["inject_error"] for t in range(1, 8)}}
        capped = drive("ab-testing", events=many)
        assert capped[10].error_rate == 20

    def test_rollback_promotes_variant_a(self, drive):
        states = drive("ab-testing", events={0: ["deploy_v2"], 2: ["inject_error"], 5: ["trigger_rollback"]})

        state = states[6]
        assert state.phase is Phase.ROLLING_BACK
        assert (state.v1_traffic, state.v2_traffic) == (100, 0)
        assert state.error_rate == 0
        assert [s.label for s in state.servers] == ["variant-a-1", "variant-a-2"]
