"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import httpx
import pytest

from tck.clients.consensus import ConsensusQueryClient
from tck.clients.mirror_node import MirrorNodeClient
from tck.core.cancellation import CancelToken
from tck.core.config import Endpoint
from tck.core.exceptions import NotFoundError
from tck.domain.records import RecordKind


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.on_sleep: Callable[[int], None] | None = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel: CancelToken | None = None) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep:
            self.on_sleep(len(self.sleeps))


class FakeConsensusTransport:
    """
    In-memory consensus query service keyed by (kind, entity_id).

    A record given as an exception instance is raised instead of returned.
    """

    def __init__(self, records: Mapping[tuple[RecordKind, str], Any] | None = None):
        self.records = dict(records or {})
        self.calls: list[tuple[RecordKind, str]] = []
        self.closed = False

    def query(self, kind: RecordKind, entity_id: str) -> Mapping[str, Any]:
        self.calls.append((kind, entity_id))
        try:
            record = self.records[(kind, entity_id)]
        except KeyError:
            raise NotFoundError(kind.value, entity_id) from None
        if isinstance(record, Exception):
            raise record
        return record

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint(
        mirror_node_url="http://mirror.test",
        consensus_url="http://consensus.test",
        json_rpc_url="http://rpc.test/",
        consistency_timeout=15.0,
        poll_interval=1.0,
        http_timeout=5.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_mirror(endpoint: Endpoint, clock: FakeClock):
    """
    Build a MirrorNodeClient whose HTTP calls go to ``handler``.

    Usage:
        def test_x(make_mirror):
            client = make_mirror(lambda request: httpx.Response(200, json={"balances": []}))
    """
    clients: list[MirrorNodeClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> MirrorNodeClient:
        client = MirrorNodeClient(
            endpoint,
            transport=httpx.MockTransport(handler),
            clock=clock,
            sleep=clock.sleep,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def consensus_records() -> dict[tuple[RecordKind, str], dict[str, Any]]:
    return {
        (RecordKind.ACCOUNT, "0.0.1001"): {
            "accountId": "0.0.1001",
            "balance": 100,
            "key": "302a300506032b6570032100aa",
            "accountMemo": "",
            "isDeleted": False,
            "isReceiverSignatureRequired": False,
            "maxAutomaticTokenAssociations": 0,
        },
        (RecordKind.BALANCE, "0.0.1001"): {
            "accountId": "0.0.1001",
            "hbars": 100,
            "tokens": {},
        },
    }


@pytest.fixture
def consensus_transport(consensus_records) -> FakeConsensusTransport:
    return FakeConsensusTransport(consensus_records)


@pytest.fixture
def consensus(endpoint: Endpoint, consensus_transport) -> ConsensusQueryClient:
    return ConsensusQueryClient(endpoint, transport=consensus_transport)


HARNESS_ENV_VARS = (
    "MIRROR_NODE_REST_URL",
    "CONSENSUS_QUERY_URL",
    "JSON_RPC_URL",
    "NODE_TIMEOUT",
    "HTTP_TIMEOUT",
    "OPERATOR_ACCOUNT_ID",
    "OPERATOR_ACCOUNT_PRIVATE_KEY",
    "NODE_IP",
    "NODE_ACCOUNT_ID",
    "MIRROR_NETWORK",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove harness variables so Settings sees only what a test sets."""
    for name in HARNESS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
