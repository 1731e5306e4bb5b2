"""Dual-source verification."""

from tck.verification.result import (
    CheckOutcome,
    SourceCheck,
    VerificationResult,
    VerificationStage,
)
from tck.verification.verifier import DualSourceVerifier, Expectation

__all__ = [
    "CheckOutcome",
    "DualSourceVerifier",
    "Expectation",
    "SourceCheck",
    "VerificationResult",
    "VerificationStage",
]
