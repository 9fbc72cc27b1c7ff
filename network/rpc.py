"""
Tendermint JSON-RPC over HTTP.

Only the three methods the signing flow needs: `status`, `abci_query` and
`broadcast_tx_sync`. Transport problems surface as `NetworkError`, JSON-RPC
level errors as `RpcError`; non-zero ABCI codes are returned to the caller.
"""

from __future__ import annotations

import base64
import itertools
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from errors import NetworkError, RpcError

_ids = itertools.count(1)


@dataclass(frozen=True)
class NodeStatus:
    chain_id: str
    height: int


@dataclass(frozen=True)
class AbciQueryResult:
    code: int
    value: bytes
    log: str = ""
    codespace: str = ""


@dataclass(frozen=True)
class BroadcastResult:
    code: int
    log: str
    tx_hash: str
    codespace: str = ""


class RpcClient:
    def __init__(self, endpoint: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.endpoint = endpoint.rstrip("/")
        self._session = session

    def __repr__(self) -> str:
        return f"RpcClient({self.endpoint!r})"

    async def call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        body = {"jsonrpc": "2.0", "id": next(_ids), "method": method, "params": params}
        try:
            if self._session is not None:
                payload = await self._post(self._session, body)
            else:
                async with aiohttp.ClientSession() as session:
                    payload = await self._post(session, body)
        except aiohttp.ClientError as e:
            raise NetworkError(self.endpoint, f"{method} failed: {e}") from e
        except ValueError as e:
            raise NetworkError(self.endpoint, f"{method} returned invalid JSON: {e}") from e

        if payload.get("error"):
            err = payload["error"]
            raise RpcError(self.endpoint, f"{method}: {err.get('message')} {err.get('data') or ''}".strip(), rpc_code=err.get("code"))
        result = payload.get("result")
        if not isinstance(result, dict):
            raise RpcError(self.endpoint, f"{method}: missing result")
        return result

    async def _post(self, session: aiohttp.ClientSession, body: Dict[str, Any]) -> Dict[str, Any]:
        async with session.post(self.endpoint, json=body) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def status(self) -> NodeStatus:
        result = await self.call("status", {})
        try:
            chain_id = str(result["node_info"]["network"])
            height = int(result["sync_info"]["latest_block_height"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(self.endpoint, f"status: unexpected shape ({e})") from e
        return NodeStatus(chain_id, height)

    async def abci_query(self, path: str, data: bytes) -> AbciQueryResult:
        result = await self.call("abci_query", {"path": path, "data": data.hex(), "prove": False})
        response = result.get("response") or {}
        raw = response.get("value")
        return AbciQueryResult(
            code=int(response.get("code") or 0),
            value=base64.b64decode(raw) if raw else b"",
            log=str(response.get("log") or ""),
            codespace=str(response.get("codespace") or ""),
        )

    async def broadcast_tx_sync(self, tx_bytes: bytes) -> BroadcastResult:
        result = await self.call("broadcast_tx_sync", {"tx": base64.b64encode(tx_bytes).decode("ascii")})
        return BroadcastResult(
            code=int(result.get("code") or 0),
            log=str(result.get("log") or ""),
            tx_hash=str(result.get("hash") or ""),
            codespace=str(result.get("codespace") or ""),
        )
