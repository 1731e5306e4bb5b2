"""Clients for the two read paths and the SDK server under test."""

from tck.clients.consensus import (
    ConsensusQueryClient,
    ConsensusTransport,
    HttpConsensusTransport,
)
from tck.clients.json_rpc import (
    JsonRpcClient,
    RpcFailure,
    RpcNotImplemented,
    RpcResult,
    RpcSuccess,
)
from tck.clients.mirror_node import MirrorNodeClient, PollOutcome, PollState

__all__ = [
    "ConsensusQueryClient",
    "ConsensusTransport",
    "HttpConsensusTransport",
    "JsonRpcClient",
    "MirrorNodeClient",
    "PollOutcome",
    "PollState",
    "RpcFailure",
    "RpcNotImplemented",
    "RpcResult",
    "RpcSuccess",
]
