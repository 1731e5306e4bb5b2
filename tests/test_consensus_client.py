"""
Tests for the consensus query client and its HTTP transport.
"""

import httpx
import pytest

from tck.clients.consensus import ConsensusQueryClient, HttpConsensusTransport
from tck.core.exceptions import (
    EntityDeletedError,
    NotFoundError,
    RecordValidationError,
    TransportError,
)
from tck.domain.query import Query
from tck.domain.records import (
    ConsensusAccountBalance,
    ConsensusAccountInfo,
    ConsensusTokenInfo,
    RecordKind,
)


ACCOUNT_INFO = {
    "accountId": "0.0.1001",
    "balance": 100,
    "key": "302a300506032b6570032100aa",
    "accountMemo": "memo",
    "isDeleted": False,
}

TOKEN_INFO = {
    "tokenId": "0.0.2000",
    "name": "testname",
    "symbol": "testsymbol",
    "decimals": 2,
    "totalSupply": 1000,
    "treasuryAccountId": "0.0.2",
}


def http_client(endpoint, handler) -> ConsensusQueryClient:
    return ConsensusQueryClient(
        endpoint,
        transport=HttpConsensusTransport(endpoint, transport=httpx.MockTransport(handler)),
    )


class TestHttpConsensusTransport:
    """Tests for the HTTP gateway transport."""

    @pytest.mark.parametrize(
        "kind, entity_id, path",
        [
            (RecordKind.ACCOUNT, "0.0.1001", "/accounts/0.0.1001/info"),
            (RecordKind.BALANCE, "0.0.1001", "/accounts/0.0.1001/balance"),
            (RecordKind.TOKEN, "0.0.2000", "/tokens/0.0.2000/info"),
        ],
    )
    def test_resource_paths(self, endpoint, kind, entity_id, path):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        transport = HttpConsensusTransport(endpoint, transport=httpx.MockTransport(handler))
        assert transport.query(kind, entity_id) == {"ok": True}
        transport.close()

        assert seen[0].url.host == "consensus.test"
        assert seen[0].url.path == path

    def test_404_is_not_found(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(404))

        with pytest.raises(NotFoundError) as exc_info:
            client.get_account_info("0.0.404")

        assert exc_info.value.entity_id == "0.0.404"
        assert exc_info.value.kind == "account"

    @pytest.mark.parametrize(
        "kind, status",
        [(RecordKind.ACCOUNT, "ACCOUNT_DELETED"), (RecordKind.TOKEN, "TOKEN_WAS_DELETED")],
    )
    def test_deleted_status_is_entity_deleted(self, endpoint, kind, status):
        """Queries for deleted entities fail with a ledger status, not a transport error."""
        transport = HttpConsensusTransport(
            endpoint,
            transport=httpx.MockTransport(lambda r: httpx.Response(400, json={"status": status})),
        )

        with pytest.raises(EntityDeletedError) as exc_info:
            transport.query(kind, "0.0.5")

        assert exc_info.value.status == status
        assert exc_info.value.kind == kind.value
        assert exc_info.value.details["status"] == status

    def test_404_keeps_ledger_status(self, endpoint):
        client = http_client(
            endpoint, lambda r: httpx.Response(404, json={"status": "INVALID_ACCOUNT_ID"})
        )

        with pytest.raises(NotFoundError) as exc_info:
            client.get_account_info("0.0.404")

        assert exc_info.value.status == "INVALID_ACCOUNT_ID"
        assert "INVALID_ACCOUNT_ID" in exc_info.value.message

    def test_other_status_is_transport_error(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(400, json={"status": "BUSY"}))

        with pytest.raises(TransportError) as exc_info:
            client.get_account_info("0.0.1001")

        assert exc_info.value.reason == "BUSY"
        assert exc_info.value.status_code == 400

    def test_server_error_is_transport_error(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(500))

        with pytest.raises(TransportError) as exc_info:
            client.get_account_info("0.0.1001")

        assert exc_info.value.status_code == 500
        assert exc_info.value.source == "consensus"

    def test_connection_error_is_transport_error(self, endpoint):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = http_client(endpoint, handler)

        with pytest.raises(TransportError):
            client.get_balance("0.0.1001")

    def test_no_retry(self, endpoint):
        """One request per read, even on failure."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = http_client(endpoint, handler)

        with pytest.raises(TransportError):
            client.get_token_info("0.0.2000")

        assert len(calls) == 1

    def test_non_object_body(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(200, json=["x"]))

        with pytest.raises(TransportError):
            client.get_account_info("0.0.1001")


class TestConsensusQueryClient:
    """Tests for typed reads."""

    def test_get_account_info(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(200, json=ACCOUNT_INFO))

        info = client.get_account_info("0.0.1001")

        assert isinstance(info, ConsensusAccountInfo)
        assert info.account_id == "0.0.1001"
        assert info.balance == 100
        assert info.account_memo == "memo"

    def test_get_balance(self, consensus):
        balance = consensus.get_balance("0.0.1001")

        assert isinstance(balance, ConsensusAccountBalance)
        assert balance.hbars == 100

    def test_get_token_info(self, endpoint):
        client = http_client(endpoint, lambda r: httpx.Response(200, json=TOKEN_INFO))

        info = client.get_token_info("0.0.2000")

        assert isinstance(info, ConsensusTokenInfo)
        assert info.decimals == 2
        assert info.treasury_account_id == "0.0.2"

    def test_fetch_now_is_idempotent(self, consensus, consensus_transport):
        """Unchanged entity returns identical records."""
        query = Query(RecordKind.ACCOUNT, "0.0.1001", "balance")

        first = consensus.fetch_now(query)
        second = consensus.fetch_now(query)

        assert first == second
        assert consensus_transport.calls == [
            (RecordKind.ACCOUNT, "0.0.1001"),
            (RecordKind.ACCOUNT, "0.0.1001"),
        ]

    def test_not_found_propagates(self, consensus):
        with pytest.raises(NotFoundError):
            consensus.fetch_now(Query(RecordKind.ACCOUNT, "0.0.9999", "balance"))

    def test_malformed_record(self, consensus, consensus_transport):
        consensus_transport.records[(RecordKind.BALANCE, "0.0.5")] = {"accountId": "0.0.5"}

        with pytest.raises(RecordValidationError) as exc_info:
            consensus.get_balance("0.0.5")

        assert exc_info.value.source == "consensus"
        assert exc_info.value.errors

    def test_close_closes_transport(self, consensus, consensus_transport):
        with consensus:
            pass

        assert consensus_transport.closed
