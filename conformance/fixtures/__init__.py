"""
Conformance suite fixtures package.
"""

from conformance.fixtures.stack_health import HealthCheckResult, StackHealthChecker
from conformance.fixtures.rpc_helpers import require_success, skip_if_not_implemented

__all__ = [
    "HealthCheckResult",
    "StackHealthChecker",
    "require_success",
    "skip_if_not_implemented",
]
