"""
Live conformance suite.

Drives a running SDK server over JSON-RPC and checks every mutation on both
the consensus query service and the mirror node.

Run with:
    pytest conformance

Required environment: JSON_RPC_URL, MIRROR_NODE_REST_URL,
CONSENSUS_QUERY_URL, OPERATOR_ACCOUNT_ID, OPERATOR_ACCOUNT_PRIVATE_KEY.
"""
