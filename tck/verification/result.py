"""Verification outcomes, one check per read path."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tck.core.exceptions import TckError
from tck.domain.records import RecordKind, Source


class CheckOutcome(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"  # mirror node never caught up
    FIELD_MISSING = "field_missing"
    INVALID_RECORD = "invalid_record"
    DELETED = "deleted"  # consensus refused the query with a deleted status
    ABSENT = "absent"
    PRESENT = "present"


PASSING_OUTCOMES = frozenset({CheckOutcome.MATCH, CheckOutcome.ABSENT})


class VerificationStage(str, Enum):
    START = "start"
    CONSENSUS_CHECKED = "consensus_checked"
    INDEX_POLLING = "index_polling"
    INDEX_SATISFIED = "index_satisfied"
    INDEX_TIMED_OUT = "index_timed_out"
    DONE = "done"


@dataclass(frozen=True)
class SourceCheck:
    """What one source said about the fact under test."""

    source: Source
    outcome: CheckOutcome
    observed: Any = None
    error: TckError | None = None

    @property
    def passed(self) -> bool:
        return self.outcome in PASSING_OUTCOMES

    def describe(self) -> str:
        if self.outcome is CheckOutcome.MISMATCH:
            return f"{self.source.value}: mismatch, observed {self.observed!r}"
        if self.error is not None:
            return f"{self.source.value}: {self.outcome.value} ({self.error.message})"
        return f"{self.source.value}: {self.outcome.value}"


@dataclass
class VerificationResult:
    """
    Outcome of checking one expectation against both sources.

    ``field`` and ``expected`` are None for absence checks.
    """

    kind: RecordKind
    entity_id: str
    field: str | None
    expected: Any
    consensus: SourceCheck | None = None
    mirror: SourceCheck | None = None
    trail: list[VerificationStage] = field(
        default_factory=lambda: [VerificationStage.START]
    )
    elapsed: float = 0.0

    @property
    def stage(self) -> VerificationStage:
        return self.trail[-1]

    def advance(self, stage: VerificationStage) -> None:
        self.trail.append(stage)

    @property
    def checks(self) -> list[SourceCheck]:
        return [c for c in (self.consensus, self.mirror) if c is not None]

    @property
    def passed(self) -> bool:
        """Both sources must have been checked and both must agree."""
        return (
            self.consensus is not None
            and self.mirror is not None
            and self.consensus.passed
            and self.mirror.passed
        )

    @property
    def failures(self) -> list[SourceCheck]:
        return [c for c in self.checks if not c.passed]

    @property
    def disagreeing_sources(self) -> list[Source]:
        return [c.source for c in self.failures]

    def failure_message(self) -> str:
        if self.passed:
            return ""
        subject = f"{self.kind.value} {self.entity_id}"
        if self.field is None:
            header = f"{subject}: expected to be absent"
        else:
            header = f"{subject}: {self.field} expected {self.expected!r}"
        lines = [header] + [f"  - {c.describe()}" for c in self.failures]
        return "\n".join(lines)

    def raise_for_failure(self) -> None:
        """Raise the first failing source's error (MismatchError for a wrong value)."""
        for check in self.failures:
            if check.error is not None:
                raise check.error
        if not self.passed:
            raise AssertionError(self.failure_message())

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "entity_id": self.entity_id,
            "field": self.field,
            "expected": self.expected,
            "passed": self.passed,
            "stage": self.stage.value,
            "elapsed": round(self.elapsed, 3),
            "checks": [
                {
                    "source": c.source.value,
                    "outcome": c.outcome.value,
                    "observed": c.observed,
                    **({"error": c.error.to_dict()} if c.error else {}),
                }
                for c in self.checks
            ],
        }
