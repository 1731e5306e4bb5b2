"""Helpers for branching on JSON-RPC result variants inside scenarios."""

from __future__ import annotations

import pytest

from tck.clients.json_rpc import RpcFailure, RpcNotImplemented, RpcResult, RpcSuccess


def skip_if_not_implemented(result: RpcResult) -> RpcResult:
    """Skip the current test when the SDK server lacks the method."""
    if isinstance(result, RpcNotImplemented):
        pytest.skip(f"{result.method} is not implemented by the SDK server")
    return result


def require_success(result: RpcResult) -> RpcSuccess:
    """Return the success variant, skipping or failing on the others."""
    skip_if_not_implemented(result)
    if isinstance(result, RpcFailure):
        pytest.fail(
            f"{result.method} failed: code={result.code} "
            f"status={result.status} message={result.message}"
        )
    return result
