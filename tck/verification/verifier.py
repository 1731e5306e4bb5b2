"""
Dual-source verifier.

The consensus query service and the mirror node are independent views of
the same ledger state. A regression that corrupts only one of them is
invisible to a check that trusts a single source, so every expectation is
read from both and passes only when both agree with it.
"""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from pydantic import BaseModel

from tck.clients.consensus import ConsensusQueryClient
from tck.clients.mirror_node import MirrorNodeClient
from tck.core.cancellation import CancelToken
from tck.core.config import Endpoint
from tck.core.exceptions import (
    DataUnavailableError,
    EntityDeletedError,
    FieldNotPresentError,
    MismatchError,
    NotFoundError,
    RecordValidationError,
    UnexpectedRecordError,
)
from tck.core.logging import get_logger
from tck.domain.query import Query
from tck.domain.records import RecordKind, Source, extract_field, schema_for
from tck.verification.result import (
    CheckOutcome,
    SourceCheck,
    VerificationResult,
    VerificationStage,
)

logger = get_logger("verifier")


@dataclass(frozen=True)
class Expectation:
    """One fact a scenario expects to find on the ledger."""

    kind: RecordKind
    entity_id: str
    field: str
    expected: Any


class DualSourceVerifier:
    """
    Compare an expected value against both read paths.

    Usage:
        verifier = DualSourceVerifier.from_endpoint(endpoint)

        result = verifier.verify(RecordKind.ACCOUNT, "0.0.1001", "balance", 100)
        result.raise_for_failure()

    Connection failures and cancellation raise. Everything else, including
    a mirror node that never caught up, is recorded on the result.
    """

    def __init__(
        self,
        consensus: ConsensusQueryClient,
        mirror: MirrorNodeClient,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.consensus = consensus
        self.mirror = mirror
        self._clock = clock

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint) -> "DualSourceVerifier":
        return cls(ConsensusQueryClient(endpoint), MirrorNodeClient(endpoint))

    def close(self) -> None:
        self.consensus.close()
        self.mirror.close()

    def __enter__(self) -> "DualSourceVerifier":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Presence and value
    # =========================================================================

    def verify(
        self,
        kind: RecordKind,
        entity_id: str,
        field: str,
        expected: Any,
        deadline: float | None = None,
        cancel: CancelToken | None = None,
    ) -> VerificationResult:
        query = Query(kind, entity_id, field)
        result = VerificationResult(
            kind=query.kind, entity_id=entity_id, field=field, expected=expected
        )
        start = self._clock()

        result.consensus = self._check(
            Source.CONSENSUS, query, expected, lambda: self.consensus.fetch_now(query)
        )
        result.advance(VerificationStage.CONSENSUS_CHECKED)

        self._check_mirror(result, query, expected, deadline, cancel)
        return self._finish(result, start)

    def verify_deleted(
        self,
        kind: RecordKind,
        entity_id: str,
        deadline: float | None = None,
        cancel: CancelToken | None = None,
    ) -> VerificationResult:
        """
        Check that an entity was deleted.

        The consensus nodes refuse queries for deleted accounts with
        ``ACCOUNT_DELETED``, so a deleted status counts as a match there, as
        does a record flagged deleted. The mirror node keeps the record and
        must report ``deleted: true``.
        """
        query = Query(kind, entity_id, "deleted")
        result = VerificationResult(
            kind=query.kind, entity_id=entity_id, field="deleted", expected=True
        )
        start = self._clock()

        check = self._check(
            Source.CONSENSUS, query, True, lambda: self.consensus.fetch_now(query)
        )
        if check.outcome is CheckOutcome.DELETED:
            check = SourceCheck(Source.CONSENSUS, CheckOutcome.MATCH, check.observed)
        result.consensus = check
        result.advance(VerificationStage.CONSENSUS_CHECKED)

        self._check_mirror(result, query, True, deadline, cancel)
        return self._finish(result, start)

    def verify_many(
        self,
        expectations: Iterable[Expectation],
        deadline: float | None = None,
        max_workers: int = 4,
        cancel: CancelToken | None = None,
    ) -> list[VerificationResult]:
        """Verify independent expectations in parallel, preserving order."""
        expectations = list(expectations)
        if not expectations:
            return []

        # Workers run in a copy of the caller's context to keep the scenario id
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(
                    contextvars.copy_context().run,
                    self.verify,
                    e.kind,
                    e.entity_id,
                    e.field,
                    e.expected,
                    deadline,
                    cancel,
                )
                for e in expectations
            ]
            return [future.result() for future in futures]

    # =========================================================================
    # Absence
    # =========================================================================

    def verify_absent(
        self,
        kind: RecordKind,
        entity_id: str,
        window: float | None = None,
        cancel: CancelToken | None = None,
    ) -> VerificationResult:
        """
        Check that an entity was NOT created.

        The consensus service must report it missing, and the mirror node
        must stay empty for the whole ``window``.
        """
        kind = RecordKind(kind)
        schema = schema_for(kind)
        result = VerificationResult(kind=kind, entity_id=entity_id, field=None, expected=None)
        start = self._clock()

        try:
            record = self.consensus.fetch_record(kind, entity_id)
        except NotFoundError:
            result.consensus = SourceCheck(Source.CONSENSUS, CheckOutcome.ABSENT)
        except EntityDeletedError as e:
            result.consensus = SourceCheck(Source.CONSENSUS, CheckOutcome.DELETED, e.status, e)
        else:
            result.consensus = SourceCheck(
                Source.CONSENSUS,
                CheckOutcome.PRESENT,
                observed=record.model_dump(),
                error=UnexpectedRecordError(
                    Source.CONSENSUS.value, schema.collection, entity_id, record.model_dump()
                ),
            )
        result.advance(VerificationStage.CONSENSUS_CHECKED)

        result.advance(VerificationStage.INDEX_POLLING)
        try:
            self.mirror.assert_absent(
                schema.collection, schema.filter_key, entity_id, window, cancel
            )
        except UnexpectedRecordError as e:
            result.mirror = SourceCheck(Source.MIRROR, CheckOutcome.PRESENT, e.record, e)
            result.advance(VerificationStage.INDEX_SATISFIED)
        except DataUnavailableError as e:
            result.mirror = SourceCheck(Source.MIRROR, CheckOutcome.UNAVAILABLE, error=e)
            result.advance(VerificationStage.INDEX_TIMED_OUT)
        else:
            result.mirror = SourceCheck(Source.MIRROR, CheckOutcome.ABSENT)
            result.advance(VerificationStage.INDEX_SATISFIED)

        return self._finish(result, start)

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_mirror(
        self,
        result: VerificationResult,
        query: Query,
        expected: Any,
        deadline: float | None,
        cancel: CancelToken | None,
    ) -> None:
        result.advance(VerificationStage.INDEX_POLLING)
        result.mirror = self._check(
            Source.MIRROR,
            query,
            expected,
            lambda: self.mirror.fetch_record(query, deadline, cancel),
        )
        if result.mirror.outcome is CheckOutcome.UNAVAILABLE:
            result.advance(VerificationStage.INDEX_TIMED_OUT)
        else:
            result.advance(VerificationStage.INDEX_SATISFIED)

    def _check(
        self,
        source: Source,
        query: Query,
        expected: Any,
        fetch: Callable[[], BaseModel],
    ) -> SourceCheck:
        expected = schema_for(query.kind).field(query.field).comparable(expected)
        try:
            record = fetch()
            observed = extract_field(query.kind, source, record, query.field)
        except NotFoundError as e:
            return SourceCheck(source, CheckOutcome.NOT_FOUND, error=e)
        except EntityDeletedError as e:
            return SourceCheck(source, CheckOutcome.DELETED, e.status, e)
        except DataUnavailableError as e:
            return SourceCheck(source, CheckOutcome.UNAVAILABLE, error=e)
        except FieldNotPresentError as e:
            return SourceCheck(source, CheckOutcome.FIELD_MISSING, error=e)
        except RecordValidationError as e:
            return SourceCheck(source, CheckOutcome.INVALID_RECORD, error=e)

        if observed == expected:
            return SourceCheck(source, CheckOutcome.MATCH, observed)
        return SourceCheck(
            source,
            CheckOutcome.MISMATCH,
            observed,
            MismatchError(source.value, query.field, expected, observed),
        )

    def _finish(self, result: VerificationResult, start: float) -> VerificationResult:
        result.advance(VerificationStage.DONE)
        result.elapsed = self._clock() - start
        if result.passed:
            logger.info(
                f"Verified {result.kind.value} {result.entity_id} "
                f"{result.field or '(absent)'} on both sources in {result.elapsed:.1f}s"
            )
        else:
            logger.warning(f"Verification failed: {result.failure_message()}")
        return result
