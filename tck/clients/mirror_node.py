"""
Mirror Node Client - Poll the eventually-consistent mirror node.

The mirror node indexes ledger state some time after consensus, so the
first read after a transaction is frequently empty. This client solves:
1. Test submits a transaction through the SUT
2. Transaction reaches consensus
3. Test reads the mirror node before indexing caught up
4. Empty collection looks like "record missing"

Solution: re-read once per poll interval until the collection is non-empty
or the consistency budget is spent. An empty collection is never taken as
proof that the record does not exist; use ``assert_absent`` for that.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import httpx
from pydantic import BaseModel

from tck.core.cancellation import CancelToken, interruptible_sleep
from tck.core.config import Endpoint
from tck.core.exceptions import (
    DataUnavailableError,
    InvalidQueryError,
    PollCancelledError,
    TransportError,
    UnexpectedRecordError,
)
from tck.core.logging import get_logger
from tck.domain.query import Query
from tck.domain.records import RecordKind, Source, parse_record, schema_for

logger = get_logger("mirror_node")

_COLLECTION_RE = re.compile(r"^[a-z][a-z_]*$")

# Worth another read within the same budget
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class PollOutcome(str, Enum):
    PENDING = "pending"
    MATERIALIZED = "materialized"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class PollState:
    """Bookkeeping for a single polling call."""

    collection: str
    max_attempts: int
    attempts: int = 0
    successful_reads: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    last_error: TransportError | None = None
    outcome: PollOutcome = PollOutcome.PENDING

    @property
    def records(self) -> list[dict[str, Any]]:
        """Records for the collection; absent and empty both mean none yet."""
        value = self.payload.get(self.collection)
        return value if isinstance(value, list) else []

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts


class MirrorNodeClient:
    """
    Read records from the mirror node REST API.

    Usage:
        client = MirrorNodeClient(endpoint)

        # Blocks until indexed or the budget is spent
        records = client.fetch_when_available("balances", "account.id", "0.0.1001")
        assert records[0]["balance"] == 100

        # Typed access
        account = client.get_account_data("0.0.1001")
    """

    def __init__(
        self,
        endpoint: Endpoint,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float, CancelToken | None], None] = interruptible_sleep,
    ):
        self.endpoint = endpoint
        self._http = httpx.Client(
            base_url=endpoint.mirror_node_url,
            timeout=endpoint.http_timeout,
            transport=transport,
        )
        self._clock = clock
        self._sleep = sleep

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "MirrorNodeClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Polling
    # =========================================================================

    def fetch_when_available(
        self,
        collection: str,
        filter_key: str,
        filter_value: str,
        deadline: float | None = None,
        cancel: CancelToken | None = None,
    ) -> list[dict[str, Any]]:
        """
        Poll ``collection`` filtered by ``filter_key=filter_value``.

        Returns the record list as soon as it is non-empty. Raises
        DataUnavailableError once ``floor(deadline / poll_interval)`` reads
        came back empty, PollCancelledError if ``cancel`` fires, and
        InvalidQueryError for requests the mirror node rejects outright.
        """
        self._validate_collection(collection)
        return self._poll(
            collection,
            f"/api/v1/{collection}",
            {filter_key: filter_value},
            f"{collection}[{filter_key}={filter_value}]",
            deadline,
            cancel,
        )

    def fetch_entity_when_available(
        self,
        collection: str,
        entity_id: str,
        deadline: float | None = None,
        cancel: CancelToken | None = None,
    ) -> dict[str, Any]:
        """
        Poll the detail resource ``/api/v1/{collection}/{entity_id}``.

        Same budget and cadence as ``fetch_when_available``. The detail
        resource answers 404 until the entity is indexed, so a 404 here is
        an empty read rather than a rejected query.
        """
        self._validate_collection(collection)
        records = self._poll(
            collection,
            f"/api/v1/{collection}/{entity_id}",
            None,
            f"{collection}/{entity_id}",
            deadline,
            cancel,
            detail=True,
        )
        return records[0]

    def assert_absent(
        self,
        collection: str,
        filter_key: str,
        filter_value: str,
        window: float | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """
        Assert that no record shows up for the whole ``window``.

        Reads at the same cadence as ``fetch_when_available`` but inverts
        the exit: any record raises UnexpectedRecordError immediately, and
        only a full window of empty reads counts as success. If every read
        failed in transit nothing was observed, so DataUnavailableError is
        raised instead of passing.
        """
        self._validate_collection(collection)
        window = self.endpoint.consistency_timeout if window is None else window
        interval = self.endpoint.poll_interval
        state = PollState(collection=collection, max_attempts=max(1, int(window // interval)))
        start = self._clock()

        while not state.exhausted:
            self._raise_if_cancelled(state, cancel)
            state.attempts += 1
            self._read_once(state, f"/api/v1/{collection}", {filter_key: filter_value})

            if state.records:
                state.outcome = PollOutcome.MATERIALIZED
                raise UnexpectedRecordError(
                    Source.MIRROR.value, collection, filter_value, state.records[0]
                )
            self._sleep(interval, cancel)

        self._raise_if_cancelled(state, cancel)
        state.outcome = PollOutcome.TIMED_OUT
        if state.successful_reads == 0:
            raise DataUnavailableError(
                collection, self._clock() - start, state.attempts, state.last_error
            ) from state.last_error

        logger.debug(
            f"{collection}[{filter_key}={filter_value}] stayed empty for {window}s"
        )

    # =========================================================================
    # Typed access
    # =========================================================================

    def fetch_record(
        self,
        query: Query,
        deadline: float | None = None,
        cancel: CancelToken | None = None,
    ) -> BaseModel:
        """Poll for the query's entity and parse the first record."""
        return self._fetch_kind(query.kind, query.entity_id, deadline, cancel)

    def get_account_data(self, account_id: str, deadline: float | None = None) -> BaseModel:
        return self._fetch_kind(RecordKind.ACCOUNT, account_id, deadline)

    def get_balance_data(self, account_id: str, deadline: float | None = None) -> BaseModel:
        return self._fetch_kind(RecordKind.BALANCE, account_id, deadline)

    def get_token_data(self, token_id: str, deadline: float | None = None) -> BaseModel:
        return self._fetch_kind(RecordKind.TOKEN, token_id, deadline)

    def _fetch_kind(
        self,
        kind: RecordKind,
        entity_id: str,
        deadline: float | None,
        cancel: CancelToken | None = None,
    ) -> BaseModel:
        schema = schema_for(kind)
        if schema.detail:
            record = self.fetch_entity_when_available(
                schema.collection, entity_id, deadline, cancel
            )
        else:
            record = self.fetch_when_available(
                schema.collection, schema.filter_key, entity_id, deadline, cancel
            )[0]
        return parse_record(kind, Source.MIRROR, record)

    # =========================================================================
    # Internals
    # =========================================================================

    def _poll(
        self,
        collection: str,
        path: str,
        params: dict[str, str] | None,
        label: str,
        deadline: float | None,
        cancel: CancelToken | None,
        detail: bool = False,
    ) -> list[dict[str, Any]]:
        deadline = self.endpoint.consistency_timeout if deadline is None else deadline
        interval = self.endpoint.poll_interval
        state = PollState(collection=collection, max_attempts=int(deadline // interval))
        start = self._clock()

        while not state.exhausted:
            self._raise_if_cancelled(state, cancel)
            state.attempts += 1
            self._read_once(state, path, params, detail)

            if state.records:
                state.outcome = PollOutcome.MATERIALIZED
                logger.debug(
                    f"{label} materialized after "
                    f"{state.attempts} attempt(s), {self._clock() - start:.1f}s"
                )
                return state.records

            logger.debug(f"{label} empty (attempt {state.attempts}/{state.max_attempts})")
            self._sleep(interval, cancel)

        self._raise_if_cancelled(state, cancel)
        state.outcome = PollOutcome.TIMED_OUT
        elapsed = self._clock() - start
        logger.info(f"{label} not indexed within {deadline}s")
        raise DataUnavailableError(
            collection, elapsed, state.attempts, state.last_error
        ) from state.last_error

    def _validate_collection(self, collection: str) -> None:
        if not _COLLECTION_RE.match(collection):
            raise InvalidQueryError(
                f"Malformed collection name: {collection!r}",
                details={"collection": collection},
            )

    def _raise_if_cancelled(self, state: PollState, cancel: CancelToken | None) -> None:
        if cancel is not None and cancel.cancelled:
            state.outcome = PollOutcome.CANCELLED
            raise PollCancelledError(state.collection, state.attempts)

    def _read_once(
        self,
        state: PollState,
        path: str,
        params: dict[str, str] | None,
        detail: bool = False,
    ) -> None:
        """
        One GET. Transient failures are recorded on ``state``, the rest raise.

        A detail body is stored as a one-element collection so both read
        shapes come out of ``state.records``.
        """
        state.payload = {}

        try:
            response = self._http.get(path, params=params)
        except httpx.TransportError as e:
            state.last_error = TransportError(
                Source.MIRROR.value, f"{self.endpoint.mirror_node_url}{path}", str(e)
            )
            logger.warning(f"Mirror node read failed, will retry: {e}")
            return

        url = str(response.request.url)

        if detail and response.status_code == 404:
            state.successful_reads += 1
            return

        if response.status_code in (400, 404):
            raise InvalidQueryError(
                f"Mirror node rejected {url} with HTTP {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        if response.status_code in TRANSIENT_STATUS_CODES:
            state.last_error = TransportError(
                Source.MIRROR.value, url, response.reason_phrase, response.status_code
            )
            logger.warning(
                f"Mirror node returned HTTP {response.status_code} for {url}, will retry"
            )
            return

        if response.is_error:
            raise TransportError(
                Source.MIRROR.value, url, response.reason_phrase, response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            state.last_error = TransportError(Source.MIRROR.value, url, f"invalid JSON: {e}")
            logger.warning(f"Mirror node sent a non-JSON body for {url}, will retry")
            return

        if not isinstance(body, dict):
            state.last_error = TransportError(
                Source.MIRROR.value, url, f"expected a JSON object, got {type(body).__name__}"
            )
            logger.warning(f"Mirror node sent an unexpected body for {url}, will retry")
            return

        state.successful_reads += 1
        state.payload = {state.collection: [body]} if detail else body
