from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Union

from cache import TTLCache
from errors import RpcError

from .racer import DEFAULT_SWALLOW
from .rpc import RpcClient

logger = logging.getLogger("rover.network")

ClientFactory = Callable[[str], RpcClient]


@dataclass(frozen=True)
class Endpoint:
    address: str
    priority: int = 0


def _normalize(address: str) -> str:
    return address.strip().rstrip("/")


class EndpointSet:
    """
    RPC endpoints for one chain, in a defined order.

    Higher priority first; equal priorities keep their insertion order.
    """

    def __init__(self, endpoints: Iterable[Union[Endpoint, str]] = ()) -> None:
        items: List[Endpoint] = []
        seen = set()
        for e in endpoints:
            ep = e if isinstance(e, Endpoint) else Endpoint(str(e))
            addr = _normalize(ep.address)
            if not addr or addr in seen:
                continue
            seen.add(addr)
            items.append(Endpoint(addr, ep.priority))
        self._items = sorted(items, key=lambda ep: -ep.priority)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"EndpointSet({[e.address for e in self._items]!r})"

    def ordered(self, override: Optional[str] = None, prefer_override: bool = False) -> List[str]:
        """Addresses to race; an override is put first or last and never duplicated."""
        addrs = [e.address for e in self._items]
        if not override or not _normalize(override):
            return addrs
        o = _normalize(override)
        rest = [a for a in addrs if a != o]
        return [o, *rest] if prefer_override else [*rest, o]


async def validate_rpc(client: RpcClient, chain_id: str) -> int:
    """Live height of a node that reports `chain_id`; other chains are an error."""
    status = await client.status()
    if status.chain_id != chain_id:
        raise RpcError(client.endpoint, f"expected chain {chain_id}, node reports {status.chain_id}")
    return status.height


async def discover(
    candidates: Sequence[str],
    chain_id: str,
    client_factory: ClientFactory,
    *,
    timeout: float = 2.0,
) -> EndpointSet:
    """Validate every candidate concurrently; survivors are ranked by reported height."""
    addrs = list(dict.fromkeys(_normalize(c) for c in candidates if _normalize(c)))

    async def check(addr: str) -> int:
        return await asyncio.wait_for(validate_rpc(client_factory(addr), chain_id), timeout)

    results = await asyncio.gather(*(check(a) for a in addrs), return_exceptions=True)
    live: List[Endpoint] = []
    for addr, res in zip(addrs, results):
        if isinstance(res, BaseException):
            if not isinstance(res, DEFAULT_SWALLOW):
                raise res
            logger.info("dropping endpoint %s: %s", addr, res)
            continue
        live.append(Endpoint(addr, res))
    return EndpointSet(live)


class EndpointCache:
    """Validated endpoint sets per chain id, refreshed after the TTL."""

    def __init__(self, ttl_seconds: float = 300.0, cache: Optional[TTLCache[str, EndpointSet]] = None) -> None:
        # an empty TTLCache is falsy, so test for None explicitly
        self._cache: TTLCache[str, EndpointSet] = cache if cache is not None else TTLCache(ttl_seconds=ttl_seconds)

    async def get(
        self,
        chain_id: str,
        candidates: Sequence[str],
        client_factory: ClientFactory,
        *,
        timeout: float = 2.0,
    ) -> EndpointSet:
        hit = self._cache.get(chain_id)
        if hit is not None:
            return hit
        found = await discover(candidates, chain_id, client_factory, timeout=timeout)
        if len(found):
            self._cache.set(chain_id, found)
        return found

    def invalidate(self, chain_id: str) -> None:
        self._cache.delete(chain_id)
