"""
Consensus Query Client - Single reads against the consensus query service.

The consensus nodes reflect the latest committed state as soon as a
transaction reaches consensus, so every read here is one request with no
retry. A missing entity is an answer (NotFoundError), not a reason to wait.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import httpx
from pydantic import BaseModel

from tck.core.config import Endpoint
from tck.core.exceptions import EntityDeletedError, NotFoundError, TransportError
from tck.core.logging import get_logger
from tck.domain.query import Query
from tck.domain.records import RecordKind, Source, parse_record

logger = get_logger("consensus")

# Precheck statuses the nodes answer with once an entity is gone
DELETED_STATUSES = frozenset({"ACCOUNT_DELETED", "TOKEN_WAS_DELETED"})


def _ledger_status(response: httpx.Response) -> str | None:
    """Ledger status string from an error body such as ``{"status": "ACCOUNT_DELETED"}``."""
    try:
        body = response.json()
    except ValueError:
        return None
    status = body.get("status") if isinstance(body, dict) else None
    return status if isinstance(status, str) else None


class ConsensusTransport(Protocol):
    """Anything that can answer a per-kind entity query."""

    def query(self, kind: RecordKind, entity_id: str) -> Mapping[str, Any]:
        """Return the raw record, or raise NotFoundError, EntityDeletedError or TransportError."""
        ...

    def close(self) -> None:
        ...


class HttpConsensusTransport:
    """Reads entity info through the HTTP query gateway in front of the nodes."""

    RESOURCES = {
        RecordKind.ACCOUNT: "/accounts/{entity_id}/info",
        RecordKind.BALANCE: "/accounts/{entity_id}/balance",
        RecordKind.TOKEN: "/tokens/{entity_id}/info",
    }

    def __init__(
        self,
        endpoint: Endpoint,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self._http = httpx.Client(
            base_url=endpoint.consensus_url,
            timeout=endpoint.http_timeout,
            transport=transport,
        )

    def query(self, kind: RecordKind, entity_id: str) -> Mapping[str, Any]:
        path = self.RESOURCES[kind].format(entity_id=entity_id)
        url = f"{self.endpoint.consensus_url}{path}"

        try:
            response = self._http.get(path)
        except httpx.TransportError as e:
            raise TransportError(Source.CONSENSUS.value, url, str(e)) from e

        if response.is_error:
            status = _ledger_status(response)
            if status in DELETED_STATUSES:
                raise EntityDeletedError(kind.value, entity_id, status)
            if response.status_code == 404:
                raise NotFoundError(kind.value, entity_id, status)
            raise TransportError(
                Source.CONSENSUS.value,
                url,
                status or response.reason_phrase,
                response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(Source.CONSENSUS.value, url, f"invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise TransportError(
                Source.CONSENSUS.value,
                url,
                f"expected a JSON object, got {type(body).__name__}",
            )
        return body

    def close(self) -> None:
        self._http.close()


class ConsensusQueryClient:
    """
    Typed reads from the consensus query service.

    Usage:
        client = ConsensusQueryClient(endpoint)
        info = client.get_account_info("0.0.1001")
        assert info.balance == 100
    """

    def __init__(
        self,
        endpoint: Endpoint,
        transport: ConsensusTransport | None = None,
    ):
        self.endpoint = endpoint
        self._transport = transport or HttpConsensusTransport(endpoint)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "ConsensusQueryClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch_now(self, query: Query) -> BaseModel:
        """Read the query's entity once."""
        return self.fetch_record(query.kind, query.entity_id)

    def fetch_record(self, kind: RecordKind, entity_id: str) -> BaseModel:
        kind = RecordKind(kind)
        raw = self._transport.query(kind, entity_id)
        logger.debug(f"Consensus {kind.value} {entity_id} read")
        return parse_record(kind, Source.CONSENSUS, raw)

    def get_account_info(self, account_id: str) -> BaseModel:
        return self.fetch_record(RecordKind.ACCOUNT, account_id)

    def get_balance(self, account_id: str) -> BaseModel:
        return self.fetch_record(RecordKind.BALANCE, account_id)

    def get_token_info(self, token_id: str) -> BaseModel:
        return self.fetch_record(RecordKind.TOKEN, token_id)
