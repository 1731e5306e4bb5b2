"""
Stack Health Checker - Verify the SUT and both read paths are reachable.

A scenario that fails because the mirror node is down says nothing about
the SDK under test, so the suite checks every service once before running.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from tck.core.config import Endpoint


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    healthy: bool
    message: str
    details: dict | None = None


class StackHealthChecker:
    """
    Verify every service the suite talks to is reachable.

    Checks:
    1. JSON-RPC server answers a request
    2. Mirror node REST API answers
    3. Consensus query gateway answers
    """

    def __init__(
        self,
        endpoint: Endpoint,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self._transport = transport

    def check_all(self) -> list[HealthCheckResult]:
        """Run all health checks and return results."""
        with httpx.Client(
            timeout=self.endpoint.http_timeout, transport=self._transport
        ) as client:
            return [
                self._check_json_rpc(client),
                self._check_http(
                    client,
                    "mirror_node",
                    f"{self.endpoint.mirror_node_url}/api/v1/accounts",
                    params={"limit": 1},
                ),
                self._check_http(client, "consensus", self.endpoint.consensus_url),
            ]

    def assert_healthy(self) -> None:
        """Assert that all checks pass, raise if any fail."""
        results = self.check_all()
        failures = [r for r in results if not r.healthy]

        if failures:
            messages = "\n".join(f"  ❌ {r.name}: {r.message}" for r in failures)
            raise AssertionError(
                f"Stack health check failed:\n{messages}\n\n"
                f"Start the SDK server and point JSON_RPC_URL, "
                f"MIRROR_NODE_REST_URL and CONSENSUS_QUERY_URL at the network."
            )

    def wait_for_healthy(
        self,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
    ) -> None:
        """Wait for the stack to become healthy."""
        start = time.time()

        while (time.time() - start) < timeout:
            try:
                self.assert_healthy()
                return
            except AssertionError:
                time.sleep(poll_interval)

        # Final check with full error
        self.assert_healthy()

    def _check_json_rpc(self, client: httpx.Client) -> HealthCheckResult:
        """Any JSON-RPC answer, including an error object, means the server is up."""
        try:
            response = client.post(
                self.endpoint.json_rpc_url,
                json={"jsonrpc": "2.0", "id": "health", "method": "rpc.discover"},
            )
        except httpx.RequestError as e:
            return HealthCheckResult(
                name="json_rpc",
                healthy=False,
                message=f"Cannot connect: {e}",
            )

        if response.status_code >= 500:
            return HealthCheckResult(
                name="json_rpc",
                healthy=False,
                message=f"HTTP {response.status_code}",
            )
        return HealthCheckResult(name="json_rpc", healthy=True, message="Server responding")

    def _check_http(
        self,
        client: httpx.Client,
        name: str,
        url: str,
        params: dict | None = None,
    ) -> HealthCheckResult:
        try:
            response = client.get(url, params=params)
        except httpx.RequestError as e:
            return HealthCheckResult(name=name, healthy=False, message=f"Cannot connect: {e}")

        if response.status_code >= 500:
            return HealthCheckResult(
                name=name,
                healthy=False,
                message=f"HTTP {response.status_code}",
            )
        return HealthCheckResult(
            name=name,
            healthy=True,
            message="Responding",
            details={"status_code": response.status_code},
        )

    def print_status(self) -> None:
        """Print current stack status to stdout."""
        results = self.check_all()

        print("\n" + "=" * 60)
        print("STACK HEALTH STATUS")
        print("=" * 60)

        for result in results:
            icon = "✅" if result.healthy else "❌"
            print(f"  {icon} {result.name}: {result.message}")

        print("=" * 60 + "\n")
