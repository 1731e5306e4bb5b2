"""Scenario driver: operator setup, teardown and SDK calls over JSON-RPC."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from tck.clients.json_rpc import JsonRpcClient, RpcResult, RpcSuccess
from tck.core.config import Settings
from tck.core.logging import get_logger, scenario_id_var

logger = get_logger("driver")


class ScenarioDriver:
    """
    Issues SDK calls for one scenario at a time.

    Usage:
        driver = ScenarioDriver(rpc, settings)

        with driver.scenario("AccountCreateTransaction #1"):
            result = driver.call("createAccount", key=key, initialBalance=100)
    """

    def __init__(self, rpc: JsonRpcClient, settings: Settings):
        self.rpc = rpc
        self.settings = settings

    def set_operator(
        self,
        account_id: str | None = None,
        private_key: str | None = None,
    ) -> RpcResult:
        """Set the paying account and network the SDK server should use."""
        if private_key is None and self.settings.operator_account_private_key:
            private_key = self.settings.operator_account_private_key.get_secret_value()
        params = {
            "operatorAccountId": account_id or self.settings.operator_account_id,
            "operatorPrivateKey": private_key,
            "nodeIp": self.settings.node_ip,
            "nodeAccountId": self.settings.node_account_id,
            "mirrorNetworkIp": self.settings.mirror_network,
        }
        return self.rpc.request(
            "setup", {k: v for k, v in params.items() if v is not None}
        )

    def reset(self) -> RpcResult:
        return self.rpc.request("reset")

    def call(self, method: str, **params: Any) -> RpcResult:
        result = self.rpc.request(method, params)
        logger.info(f"{method} -> {type(result).__name__}")
        return result

    @contextmanager
    def scenario(self, name: str) -> Iterator["ScenarioDriver"]:
        """Set up the operator, tag log lines with ``name``, reset afterwards."""
        token = scenario_id_var.set(name)
        try:
            setup = self.set_operator()
            if not isinstance(setup, RpcSuccess):
                logger.warning(f"Operator setup returned {type(setup).__name__}")
            yield self
        finally:
            try:
                self.reset()
            finally:
                scenario_id_var.reset(token)
