"""Harness exception taxonomy.

Every error carries a machine-readable ``error_code`` and a ``details``
mapping so that failures can be rendered the same way whether they end up
in a pytest report or a JSON log line.
"""

from __future__ import annotations

from typing import Any


class TckError(Exception):
    """Base harness exception with structured error details."""

    error_code: str = "TCK_ERROR"
    message: str = "Conformance harness error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class DataUnavailableError(TckError):
    """The mirror node did not index the record within the budget."""

    error_code = "DATA_UNAVAILABLE"

    def __init__(
        self,
        collection: str,
        elapsed: float,
        attempts: int,
        last_error: Exception | None = None,
    ):
        self.collection = collection
        self.elapsed = elapsed
        self.attempts = attempts
        self.last_error = last_error
        message = (
            f"'{collection}' had no records after {attempts} attempts "
            f"({elapsed:.1f}s)"
        )
        if last_error:
            message += f"; last error: {last_error}"
        super().__init__(
            message,
            details={
                "collection": collection,
                "elapsed": round(elapsed, 3),
                "attempts": attempts,
            },
        )


class NotFoundError(TckError):
    """Entity does not exist on the consensus query service."""

    error_code = "NOT_FOUND"

    def __init__(self, kind: str, entity_id: str, status: str | None = None):
        self.kind = kind
        self.entity_id = entity_id
        self.status = status
        message = f"{kind} {entity_id} not found"
        if status:
            message += f" ({status})"
        super().__init__(
            message,
            details={
                "kind": kind,
                "entity_id": entity_id,
                **({"status": status} if status else {}),
            },
        )


class EntityDeletedError(TckError):
    """Consensus query refused because the entity has been deleted."""

    error_code = "ENTITY_DELETED"

    def __init__(self, kind: str, entity_id: str, status: str):
        self.kind = kind
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            f"{kind} {entity_id} is deleted ({status})",
            details={"kind": kind, "entity_id": entity_id, "status": status},
        )


class TransportError(TckError):
    """Network or HTTP failure talking to a read path or the SUT."""

    error_code = "TRANSPORT_ERROR"

    def __init__(
        self,
        source: str,
        url: str,
        reason: str,
        status_code: int | None = None,
    ):
        self.source = source
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(
            f"{source} request to {url} failed: {reason}",
            details={
                "source": source,
                "url": url,
                **({"status_code": status_code} if status_code else {}),
            },
        )


class MismatchError(TckError, AssertionError):
    """Data was read successfully but differs from the expectation."""

    error_code = "MISMATCH"

    def __init__(self, source: str, field: str, expected: Any, observed: Any):
        self.source = source
        self.field = field
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"{source}: {field} expected {expected!r}, observed {observed!r}",
            details={
                "source": source,
                "field": field,
                "expected": expected,
                "observed": observed,
            },
        )


class InvalidQueryError(TckError):
    """The query itself is malformed; retrying cannot help."""

    error_code = "INVALID_QUERY"


class UnknownFieldError(InvalidQueryError):
    """Field name is not part of the record kind's schema."""

    error_code = "UNKNOWN_FIELD"

    def __init__(self, kind: str, field: str, known: list[str]):
        self.kind = kind
        self.field = field
        super().__init__(
            f"{kind} records have no field '{field}'",
            details={"kind": kind, "field": field, "known": sorted(known)},
        )


class FieldNotPresentError(TckError):
    """Field is in the schema but was missing from the returned payload."""

    error_code = "FIELD_NOT_PRESENT"

    def __init__(self, source: str, kind: str, field: str, path: str):
        self.source = source
        self.kind = kind
        self.field = field
        self.path = path
        super().__init__(
            f"{source} {kind} record has no value at '{path}' (field '{field}')",
            details={"source": source, "kind": kind, "field": field, "path": path},
        )


class UnexpectedRecordError(TckError, AssertionError):
    """A record appeared where absence was asserted."""

    error_code = "UNEXPECTED_RECORD"

    def __init__(self, source: str, collection: str, filter_value: str, record: Any = None):
        self.source = source
        self.collection = collection
        self.filter_value = filter_value
        self.record = record
        super().__init__(
            f"{source}: expected no '{collection}' record for {filter_value}",
            details={"source": source, "collection": collection, "filter_value": filter_value},
        )


class PollCancelledError(TckError):
    """Polling was aborted by an external cancellation signal."""

    error_code = "CANCELLED"

    def __init__(self, collection: str, attempts: int):
        self.collection = collection
        self.attempts = attempts
        super().__init__(
            f"Polling '{collection}' cancelled after {attempts} attempts",
            details={"collection": collection, "attempts": attempts},
        )


class RpcProtocolError(TckError):
    """The SUT answered with something that is not a JSON-RPC 2.0 response."""

    error_code = "RPC_PROTOCOL_ERROR"


class RecordValidationError(TckError):
    """Payload could not be deserialised into the record kind's model."""

    error_code = "INVALID_RECORD"

    def __init__(self, source: str, kind: str, errors: list[dict[str, Any]]):
        self.source = source
        self.kind = kind
        self.errors = errors
        super().__init__(
            f"{source} returned a malformed {kind} record ({len(errors)} errors)",
            details={"source": source, "kind": kind, "errors": errors},
        )
