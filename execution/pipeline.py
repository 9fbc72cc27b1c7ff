"""
Signing and submission pipeline.

    validate endpoint -> account lookup -> build -> estimate gas -> sign -> broadcast

Steps run strictly in sequence; only the network calls inside a step are
raced across endpoints. Broadcast is at-least-once from the caller's point of
view: the tx hash is logged and audited before the broadcast is attempted, so a
lost response can be checked on chain instead of blindly resubmitting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from app.core.container import AppContext
from errors import AppError, BroadcastRejectedError, classify_exception
from network.endpoints import EndpointSet, validate_rpc
from network.queries import AccountState, account_state, broadcast
from network.rpc import BroadcastResult, RpcClient
from observability import build_log_context, log_event, now_ms
from signing.account import Account
from txs.builder import Fee, build_for_account
from txs.gas import GasEstimator
from txs.msgs import MsgLike, grant_exec
from txs.sign_doc import SignedTx


@dataclass(frozen=True)
class PipelineResult:
    signed: SignedTx
    gas_used: int
    gas_limit: int
    broadcast: Optional[BroadcastResult] = None
    endpoint: Optional[str] = None

    @property
    def tx_hash(self) -> str:
        return self.signed.tx_hash

    @property
    def dry_run(self) -> bool:
        return self.broadcast is None


class TxPipeline:
    def __init__(
        self,
        ctx: AppContext,
        chain_id: str,
        *,
        endpoints: Optional[Sequence[str]] = None,
        client_factory: Optional[Callable[[str], RpcClient]] = None,
        discover: bool = False,
    ) -> None:
        self.ctx = ctx
        self.chain_id = chain_id
        self._candidates = list(endpoints) if endpoints is not None else list(ctx.settings.RPC_ENDPOINTS)
        self._client_factory = client_factory or RpcClient
        self._discover = discover

    def client(self, endpoint: str) -> RpcClient:
        return self._client_factory(endpoint)

    async def endpoints(self) -> List[str]:
        """Endpoints to race, in order, with the configured override applied."""
        s = self.ctx.settings
        if self._discover:
            found = await self.ctx.endpoint_cache.get(self.chain_id, self._candidates, self.client, timeout=s.QUERY_TIMEOUT_SEC)
        else:
            found = EndpointSet(self._candidates)
        return found.ordered(s.RPC_OVERRIDE, s.RPC_OVERRIDE_FIRST)

    async def latest_height(self, endpoints: Optional[Sequence[str]] = None) -> int:
        """Height reported by the first node that confirms it serves this chain."""
        eps = list(endpoints) if endpoints is not None else await self.endpoints()
        return await self.ctx.racer.race(eps, lambda ep: validate_rpc(self.client(ep), self.chain_id), label="validate_endpoint")

    async def account_state(self, address: str, endpoints: Optional[Sequence[str]] = None) -> AccountState:
        eps = list(endpoints) if endpoints is not None else await self.endpoints()
        return await self.ctx.racer.race(eps, lambda ep: account_state(self.client(ep), address), label="account_lookup")

    async def run(
        self,
        account: Account,
        messages: Sequence[MsgLike],
        fee: Fee,
        *,
        prefix: str,
        executor: Optional[Account] = None,
        memo: str = "",
        dry_run: bool = False,
        request_id: Optional[str] = None,
    ) -> PipelineResult:
        """
        Sign `messages` for `account` and submit them.

        With `executor`, the messages are wrapped in an authz exec signed by the
        executor, and `account` pays the fee as granter.
        """
        ctx = build_log_context(tool="pipeline", request_id=request_id)
        signer = account
        fee_granter: Optional[str] = None
        msgs: List[MsgLike] = list(messages)
        if executor is not None:
            msgs = [grant_exec(executor.address(prefix), msgs)]
            fee_granter = account.address(prefix)
            signer = executor
        address = signer.address(prefix)

        eps = await self.endpoints()
        height = await self.latest_height(eps)
        state = await self.account_state(address, eps)
        log_event(
            "account_loaded",
            ctx=ctx,
            data={"address": address, "height": height, "account_number": state.account_number, "sequence": state.sequence, "backend": signer.backend.selector},
        )

        unsigned = await build_for_account(
            signer,
            msgs,
            fee,
            sequence=state.sequence,
            account_number=state.account_number,
            chain_id=self.chain_id,
            on_chain_public_key=state.public_key,
            fee_granter=fee_granter,
            gas_limit=self.ctx.settings.DEFAULT_GAS_LIMIT,
            memo=memo,
        )
        estimator = GasEstimator(self.ctx.racer, self.client, timeout=self.ctx.settings.QUERY_TIMEOUT_SEC)
        estimate = await estimator.estimate(unsigned, signer.backend, eps)
        signed = estimate.signed
        tx_hash = signed.tx_hash
        log_event("tx_signed", ctx=ctx, data={"tx_hash": tx_hash, "gas_used": estimate.gas_used, "gas_limit": estimate.gas_limit})
        self._audit(ctx, tx_hash, "signed", True, summary={"gas_limit": estimate.gas_limit, "dry_run": dry_run})

        if dry_run:
            return PipelineResult(signed, estimate.gas_used, estimate.gas_limit)

        self._audit(ctx, tx_hash, "broadcast_pending", True)
        tx_bytes = signed.to_bytes()
        try:
            endpoint, result = await self.ctx.racer.race_endpoint(
                eps,
                lambda ep: broadcast(self.client(ep), tx_bytes),
                timeout=self.ctx.settings.BROADCAST_TIMEOUT_SEC,
                label="broadcast",
                swallow=(BroadcastRejectedError,),
            )
        except AppError as e:
            err = classify_exception(e)
            log_event("broadcast_failed", ctx=ctx, data={"tx_hash": tx_hash, "error": err.code, "detail": err.data}, level=logging.WARNING)
            self._audit(ctx, tx_hash, "broadcast_failed", False, error_code=err.code, summary=err.data)
            raise
        log_event("tx_broadcast", ctx=ctx, data={"tx_hash": result.tx_hash or tx_hash, "endpoint": endpoint})
        self._audit(ctx, tx_hash, "broadcast_ok", True, endpoint=endpoint)
        return PipelineResult(signed, estimate.gas_used, estimate.gas_limit, result, endpoint)

    def _audit(self, ctx: dict, tx_hash: str, stage: str, ok: bool, **kwargs) -> None:
        self.ctx.audit_log.append(
            ts_ms=now_ms(),
            request_id=ctx["request_id"],
            chain_id=self.chain_id,
            tx_hash=tx_hash,
            stage=stage,
            ok=ok,
            **kwargs,
        )
