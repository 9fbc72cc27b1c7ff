from .endpoints import Endpoint, EndpointCache, EndpointSet, discover, validate_rpc
from .queries import AccountState, account_state, broadcast, query, query_path, simulate
from .racer import EndpointRacer
from .rpc import AbciQueryResult, BroadcastResult, NodeStatus, RpcClient

__all__ = [
    "AbciQueryResult",
    "AccountState",
    "BroadcastResult",
    "Endpoint",
    "EndpointCache",
    "EndpointRacer",
    "EndpointSet",
    "NodeStatus",
    "RpcClient",
    "account_state",
    "broadcast",
    "discover",
    "query",
    "query_path",
    "simulate",
    "validate_rpc",
]
