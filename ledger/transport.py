from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ledgerblue.commException import CommException

from errors import BackendError, DeviceError

from . import apdu
from .apdu import APDUCommand, APDUResponse
from .der import der_to_fixed

logger = logging.getLogger("rover.ledger")


def _default_dongle_factory() -> Any:
    from ledgerblue.comm import getDongle

    return getDongle(False)


class LedgerTransport:
    """
    Async wrapper around a Ledger HID dongle running the Cosmos app.

    The device is a single-threaded resource: every multi-command operation holds
    the transport lock for its full duration, and the blocking HID exchange runs in
    a worker thread so the event loop keeps serving other tasks.
    """

    def __init__(self, dongle_factory: Optional[Callable[[], Any]] = None) -> None:
        self._dongle_factory = dongle_factory or _default_dongle_factory
        self._dongle: Any = None
        self._lock = asyncio.Lock()

    def _require_dongle(self) -> Any:
        if self._dongle is None:
            try:
                self._dongle = self._dongle_factory()
            except (CommException, OSError) as exc:
                raise BackendError("ledger", f"Failed to connect to Ledger device: {exc}") from exc
        return self._dongle

    def _exchange_sync(self, command: APDUCommand) -> APDUResponse:
        dongle = self._require_dongle()
        try:
            data = dongle.exchange(command.serialize())
        except CommException as exc:
            return APDUResponse(status=int(exc.sw), data=bytes(exc.data or b""))
        except OSError as exc:
            self.close()
            raise BackendError("ledger", f"Ledger HID exchange failed: {exc}") from exc
        return APDUResponse(status=apdu.SW_OK, data=bytes(data or b""))

    async def _exchange_all(self, commands: Sequence[APDUCommand]) -> List[APDUResponse]:
        responses: List[APDUResponse] = []
        async with self._lock:
            for command in commands:
                resp = await asyncio.to_thread(self._exchange_sync, command)
                if not resp.ok:
                    raise DeviceError(resp.status)
                responses.append(resp)
        return responses

    async def exchange(self, command: APDUCommand) -> APDUResponse:
        (resp,) = await self._exchange_all([command])
        return resp

    async def get_version(self) -> Tuple[int, int, int, int, int]:
        resp = await self.exchange(apdu.get_version())
        return apdu.parse_version(resp.data)

    async def get_address(self, hrp: str, derivation_path: str, show_address: bool = False) -> Tuple[bytes, str]:
        resp = await self.exchange(apdu.get_address(hrp, derivation_path, show_address))
        return apdu.parse_address(resp.data)

    async def sign(self, derivation_path: str, payload: bytes) -> bytes:
        commands = apdu.sign_payload(derivation_path, payload)
        logger.debug("ledger sign: %d payload bytes in %d commands", len(payload), len(commands))
        responses = await self._exchange_all(commands)
        return der_to_fixed(responses[-1].data)

    def close(self) -> None:
        if self._dongle is not None:
            try:
                self._dongle.close()
            finally:
                self._dongle = None
