"""
Tests for the scenario driver.
"""

import json

import httpx
import pytest

from tck.clients.json_rpc import JsonRpcClient, RpcSuccess
from tck.core.config import Settings
from tck.core.logging import scenario_id_var
from tck.driver import ScenarioDriver


@pytest.fixture
def settings(clean_env) -> Settings:
    return Settings(
        _env_file=None,
        operator_account_id="0.0.2",
        operator_account_private_key="302e020100300506032b657004220420aa",
        node_ip="127.0.0.1:50211",
        node_account_id="0.0.3",
        mirror_network="127.0.0.1:5600",
    )


@pytest.fixture
def recorded(endpoint):
    sent = []
    seen_scenarios = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        sent.append(body)
        seen_scenarios.append(scenario_id_var.get())
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {}})

    client = JsonRpcClient(endpoint, transport=httpx.MockTransport(handler))
    yield client, sent, seen_scenarios
    client.close()


@pytest.mark.usefixtures("clean_env")
class TestScenarioDriver:
    """Tests for ScenarioDriver."""

    def test_set_operator_uses_settings(self, recorded, settings):
        rpc, sent, _ = recorded
        driver = ScenarioDriver(rpc, settings)

        response = driver.set_operator()

        assert isinstance(response, RpcSuccess)
        assert sent[0]["method"] == "setup"
        assert sent[0]["params"] == {
            "operatorAccountId": "0.0.2",
            "operatorPrivateKey": "302e020100300506032b657004220420aa",
            "nodeIp": "127.0.0.1:50211",
            "nodeAccountId": "0.0.3",
            "mirrorNetworkIp": "127.0.0.1:5600",
        }

    def test_set_operator_drops_unset_network(self, recorded):
        rpc, sent, _ = recorded
        driver = ScenarioDriver(rpc, Settings(_env_file=None))

        driver.set_operator("0.0.5", "key")

        assert sent[0]["params"] == {"operatorAccountId": "0.0.5", "operatorPrivateKey": "key"}

    def test_call_passes_keyword_params(self, recorded, settings):
        rpc, sent, _ = recorded
        driver = ScenarioDriver(rpc, settings)

        driver.call("createAccount", key="abc", initialBalance=100)

        assert sent[0]["method"] == "createAccount"
        assert sent[0]["params"] == {"key": "abc", "initialBalance": 100}

    def test_scenario_sets_up_and_resets(self, recorded, settings):
        rpc, sent, seen = recorded
        driver = ScenarioDriver(rpc, settings)

        with driver.scenario("AccountCreate #1") as d:
            d.call("createAccount")

        assert [b["method"] for b in sent] == ["setup", "createAccount", "reset"]
        assert seen == ["AccountCreate #1"] * 3
        assert scenario_id_var.get() is None

    def test_scenario_resets_on_failure(self, recorded, settings):
        rpc, sent, _ = recorded
        driver = ScenarioDriver(rpc, settings)

        with pytest.raises(RuntimeError):
            with driver.scenario("boom"):
                raise RuntimeError("scenario failed")

        assert sent[-1]["method"] == "reset"
        assert scenario_id_var.get() is None
