"""
JSON-RPC client for the SDK server under test.

Responses are returned as one of three variants instead of being thrown:

- RpcSuccess: the SDK call completed; ``result`` holds its payload
- RpcFailure: the SDK reported an error, e.g. a ledger status such as
  ``INVALID_SIGNATURE`` in ``status``
- RpcNotImplemented: the server does not support the method; the scenario
  should be skipped rather than failed

Scenarios that expect a transaction to be rejected branch on the variant
instead of catching exceptions. Only transport problems and malformed
responses raise.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any

import httpx

from tck.core.config import Endpoint
from tck.core.exceptions import RpcProtocolError, TransportError
from tck.core.logging import get_logger

logger = get_logger("json_rpc")

JSONRPC_VERSION = "2.0"
METHOD_NOT_FOUND = -32601
NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


@dataclass(frozen=True)
class RpcSuccess:
    method: str
    result: dict[str, Any] = field(default_factory=dict)

    ok = True

    def __getitem__(self, key: str) -> Any:
        return self.result[key]


@dataclass(frozen=True)
class RpcFailure:
    method: str
    code: int
    message: str
    status: str | None = None
    data: Any = None

    ok = False


@dataclass(frozen=True)
class RpcNotImplemented:
    method: str

    ok = False


RpcResult = RpcSuccess | RpcFailure | RpcNotImplemented


class JsonRpcClient:
    """
    Minimal JSON-RPC 2.0 client over HTTP POST.

    Usage:
        rpc = JsonRpcClient(endpoint)
        result = rpc.request("createAccount", {"key": key, "initialBalance": 100})

        if isinstance(result, RpcNotImplemented):
            pytest.skip(...)
        if isinstance(result, RpcFailure):
            assert result.status == "INVALID_SIGNATURE"
    """

    def __init__(
        self,
        endpoint: Endpoint,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self._http = httpx.Client(
            timeout=endpoint.http_timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._ids = itertools.count()
        self._id_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "JsonRpcClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def request(self, method: str, params: dict[str, Any] | None = None) -> RpcResult:
        request_id = self._next_id()
        payload: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        url = self.endpoint.json_rpc_url
        try:
            response = self._http.post(url, json=payload)
        except httpx.TransportError as e:
            raise TransportError("json-rpc", url, str(e)) from e

        if response.status_code != 200:
            raise TransportError(
                "json-rpc", url, response.reason_phrase, response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RpcProtocolError(f"{method}: response is not JSON") from e

        return self._parse_response(method, request_id, body)

    def _parse_response(self, method: str, request_id: int, body: Any) -> RpcResult:
        if not isinstance(body, dict) or body.get("jsonrpc") != JSONRPC_VERSION:
            raise RpcProtocolError(
                f"{method}: not a JSON-RPC {JSONRPC_VERSION} response",
                details={"body": body},
            )
        if body.get("id") != request_id:
            raise RpcProtocolError(
                f"{method}: response id {body.get('id')!r} does not match {request_id}",
                details={"expected_id": request_id, "id": body.get("id")},
            )

        if "error" in body:
            error = body["error"] or {}
            code = error.get("code")
            if code == METHOD_NOT_FOUND:
                logger.warning(f"Method {method} not found on the SDK server")
                return RpcNotImplemented(method)

            data = error.get("data")
            status = data.get("status") if isinstance(data, dict) else None
            logger.debug(f"{method} failed: code={code} status={status}")
            return RpcFailure(
                method=method,
                code=code,
                message=error.get("message", ""),
                status=status,
                data=data,
            )

        if "result" not in body:
            raise RpcProtocolError(
                f"{method}: response has neither result nor error",
                details={"body": body},
            )

        result = body["result"]
        if isinstance(result, dict) and result.get("status") == NOT_IMPLEMENTED:
            return RpcNotImplemented(method)
        if result is None:
            result = {}
        elif not isinstance(result, dict):
            result = {"value": result}
        return RpcSuccess(method, result)
