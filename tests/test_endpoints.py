import asyncio

import pytest

from cache import TTLCache
from errors import NetworkError, RpcError
from network.endpoints import Endpoint, EndpointCache, EndpointSet, discover, validate_rpc
from network.rpc import NodeStatus
from tests.helpers import CHAIN_ID, fake_client


def test_ordered_by_priority_then_insertion():
    eps = EndpointSet([Endpoint("http://b", 1), Endpoint("http://a", 5), "http://c", Endpoint("http://d", 1)])
    assert eps.ordered() == ["http://a", "http://b", "http://d", "http://c"]


def test_override_prepended_or_appended_once():
    eps = EndpointSet(["http://a/", "http://b", "http://a"])
    assert len(eps) == 2
    assert eps.ordered("http://o") == ["http://a", "http://b", "http://o"]
    assert eps.ordered("http://o", prefer_override=True) == ["http://o", "http://a", "http://b"]
    assert eps.ordered("http://b/", prefer_override=True) == ["http://b", "http://a"]


def test_validate_rpc_checks_chain_id():
    assert asyncio.run(validate_rpc(fake_client("http://a", status=NodeStatus(CHAIN_ID, 77)), CHAIN_ID)) == 77
    with pytest.raises(RpcError):
        asyncio.run(validate_rpc(fake_client("http://a", status=NodeStatus("osmosis-1", 77)), CHAIN_ID))


def _factory(heights):
    def make(ep):
        value = heights[ep]
        client = fake_client(ep, status=NodeStatus(CHAIN_ID, value) if isinstance(value, int) else None)
        if not isinstance(value, int):
            client.status.side_effect = value
        return client

    return make


def test_discover_ranks_by_height_and_drops_dead_nodes():
    heights = {"http://a": 10, "http://b": 30, "http://c": NetworkError("http://c", "refused"), "http://d": 20}
    found = asyncio.run(discover(list(heights), CHAIN_ID, _factory(heights)))
    assert found.ordered() == ["http://b", "http://d", "http://a"]


def test_discover_propagates_unexpected_errors():
    heights = {"http://a": 10, "http://b": KeyError("boom")}
    with pytest.raises(KeyError):
        asyncio.run(discover(list(heights), CHAIN_ID, _factory(heights)))


def test_endpoint_cache_reuses_until_ttl():
    now = [0.0]
    cache = EndpointCache(cache=TTLCache(ttl_seconds=60, clock=lambda: now[0]))
    calls = []

    def factory(ep):
        calls.append(ep)
        return fake_client(ep)

    first = asyncio.run(cache.get(CHAIN_ID, ["http://a"], factory))
    asyncio.run(cache.get(CHAIN_ID, ["http://a"], factory))
    assert first.ordered() == ["http://a"]
    assert calls == ["http://a"]

    now[0] = 61.0
    asyncio.run(cache.get(CHAIN_ID, ["http://a"], factory))
    assert calls == ["http://a", "http://a"]


def test_endpoint_cache_keeps_injected_empty_cache():
    injected = TTLCache(ttl_seconds=60, clock=lambda: 0.0)
    assert len(injected) == 0
    assert EndpointCache(cache=injected)._cache is injected


def test_ttl_cache_age_and_eviction():
    now = [100.0]
    cache = TTLCache(ttl_seconds=10, max_items=2, clock=lambda: now[0])
    cache.set("a", 1)
    now[0] = 103.0
    assert cache.get_with_age("a") == (1, 3.0)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") is None
    assert len(cache) == 2
