from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from errors import EstimationFailedError, NoEndpointAvailableError
from network.queries import simulate
from network.racer import EndpointRacer
from network.rpc import RpcClient
from signing.base import KeyBackend

from . import sign_doc
from .builder import UnsignedTx
from .sign_doc import SignedTx

logger = logging.getLogger("rover.txs")


def adjusted_gas(consumed: int) -> int:
    """Simulated consumption plus a 25% margin (integer arithmetic)."""
    return consumed + consumed // 4


@dataclass(frozen=True)
class GasEstimate:
    tx: UnsignedTx
    signed: SignedTx
    gas_used: int

    @property
    def gas_limit(self) -> int:
        return self.tx.gas_limit


class GasEstimator:
    """
    Sign a trial tx, simulate it on the fastest endpoint, then rebuild and
    re-sign with the adjusted gas limit.
    """

    def __init__(self, racer: EndpointRacer, client_factory: Callable[[str], RpcClient], *, timeout: Optional[float] = None) -> None:
        self._racer = racer
        self._client_factory = client_factory
        self._timeout = timeout

    async def simulate(self, signed: SignedTx, endpoints: Sequence[str]) -> int:
        tx_bytes = signed.to_bytes()
        try:
            return await self._racer.race(
                endpoints,
                lambda ep: simulate(self._client_factory(ep), tx_bytes),
                timeout=self._timeout,
                label="simulate",
            )
        except NoEndpointAvailableError as e:
            raise EstimationFailedError("No endpoint could simulate the transaction", dict(e.data)) from e

    async def estimate(self, unsigned: UnsignedTx, backend: KeyBackend, endpoints: Sequence[str]) -> GasEstimate:
        trial = await sign_doc.sign(unsigned, backend)
        used = await self.simulate(trial, endpoints)
        final = unsigned.with_gas(adjusted_gas(used))
        logger.debug("gas used %d, limit %d", used, final.gas_limit)
        return GasEstimate(final, await sign_doc.sign(final, backend), used)
