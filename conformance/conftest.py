"""
Conformance Suite Configuration - pytest fixtures for live scenarios.

This conftest wires up a live run where:
1. Scenarios drive a real SDK server over JSON-RPC (no mocks)
2. Every scenario gets a fresh operator setup and a reset afterwards
3. Results are checked on the consensus query service AND the mirror node
4. Methods the SDK server does not implement are skipped, not failed

The unit tests in tests/ use their own conftest with mock transports.
"""

from __future__ import annotations

from typing import Generator

import pytest

from tck.clients.json_rpc import JsonRpcClient
from tck.core.config import Endpoint, Settings, load_settings
from tck.core.logging import setup_logging
from tck.driver import ScenarioDriver
from tck.verification.verifier import DualSourceVerifier
from conformance.fixtures.stack_health import StackHealthChecker


# =============================================================================
# CONFIGURATION
# =============================================================================


@pytest.fixture(scope="session")
def settings() -> Settings:
    """Load harness settings from the environment, once per run."""
    settings = load_settings()
    setup_logging(settings)
    return settings


@pytest.fixture(scope="session")
def endpoint(settings: Settings) -> Endpoint:
    return Endpoint.from_settings(settings)


# =============================================================================
# STACK HEALTH CHECK (Session-scoped)
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def verify_stack_healthy(settings: Settings, endpoint: Endpoint):
    """
    Verify the SDK server and both read paths respond before any scenario.

    Skips the whole run when the operator is missing or a service is down.

    This runs once at the start of the test session.
    """
    print("\n" + "=" * 60)
    print("🔍 LEDGER SDK CONFORMANCE SUITE")
    print("=" * 60)
    print(f"  JSON-RPC:    {endpoint.json_rpc_url}")
    print(f"  Mirror node: {endpoint.mirror_node_url}")
    print(f"  Consensus:   {endpoint.consensus_url}")
    print(f"  Budget:      {endpoint.consistency_timeout:.0f}s")
    print("=" * 60)

    if not settings.operator_configured:
        pytest.skip(
            "OPERATOR_ACCOUNT_ID and OPERATOR_ACCOUNT_PRIVATE_KEY must be set "
            "to run the conformance suite"
        )

    health = StackHealthChecker(endpoint)
    try:
        health.wait_for_healthy(timeout=30)
        print("\n✅ All services responding, starting scenarios...\n")
    except AssertionError as e:
        health.print_status()
        pytest.skip(f"Stack not reachable: {e}")


# =============================================================================
# CLIENTS
# =============================================================================


@pytest.fixture(scope="session")
def rpc(endpoint: Endpoint) -> Generator[JsonRpcClient, None, None]:
    with JsonRpcClient(endpoint) as client:
        yield client


@pytest.fixture(scope="session")
def verifier(endpoint: Endpoint) -> Generator[DualSourceVerifier, None, None]:
    """
    Dual-source verifier shared by all scenarios.

    Usage in tests:
        def test_something(driver, verifier):
            result = driver.call("createAccount", ...)
            verifier.verify(RecordKind.ACCOUNT, account_id, "balance", 100).raise_for_failure()
    """
    with DualSourceVerifier.from_endpoint(endpoint) as v:
        yield v


# =============================================================================
# SCENARIO DRIVER (Per-test, operator setup and reset)
# =============================================================================


@pytest.fixture
def driver(
    request: pytest.FixtureRequest,
    rpc: JsonRpcClient,
    settings: Settings,
) -> Generator[ScenarioDriver, None, None]:
    """Set the operator before the scenario and reset the SDK server after it."""
    scenario_driver = ScenarioDriver(rpc, settings)
    with scenario_driver.scenario(request.node.name):
        yield scenario_driver


# =============================================================================
# PYTEST HOOKS
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "crypto: Account and balance scenarios",
    )
    config.addinivalue_line(
        "markers",
        "token: Token service scenarios",
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test module."""
    for item in items:
        if "test_account" in str(item.fspath):
            item.add_marker(pytest.mark.crypto)

        if "test_token" in str(item.fspath):
            item.add_marker(pytest.mark.token)
