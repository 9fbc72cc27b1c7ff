from __future__ import annotations

from typing import Optional

from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SIGN_MODE_LEGACY_AMINO_JSON

from errors import MalformedInputError
from ledger.transport import LedgerTransport

from . import keys
from .base import KeyBackend


class LedgerBackend(KeyBackend):
    """
    Hardware signer: the private key never leaves the device.

    Signs canonical amino JSON only; the device returns DER which the transport
    converts to the fixed 64-byte form.
    """

    sign_mode = SIGN_MODE_LEGACY_AMINO_JSON

    def __init__(self, transport: LedgerTransport, derivation_path: str = keys.derivation_path_for(), hrp: str = "cosmos") -> None:
        self._transport = transport
        self._derivation_path = derivation_path
        self._hrp = hrp
        self._public_key: Optional[bytes] = None

    @property
    def selector(self) -> str:
        return "Ledger"

    @property
    def derivation_path(self) -> str:
        return self._derivation_path

    async def sign(self, data: bytes, digest: keys.Digest = keys.Digest.SHA256) -> bytes:
        # the Cosmos app hashes the payload with SHA-256 on the device
        if digest is not keys.Digest.SHA256:
            raise MalformedInputError(f"Ledger cannot sign over {digest.value}", {"digest": digest.value})
        return await self._transport.sign(self._derivation_path, data)

    async def public_key(self) -> bytes:
        if self._public_key is None:
            self._public_key, _ = await self._transport.get_address(self._hrp, self._derivation_path, False)
        return self._public_key

    async def uncompressed_public_key(self) -> bytes:
        return keys.decompress_public_key(await self.public_key())

    async def show_address(self) -> str:
        """Ask the device to display the address for user confirmation."""
        _, address = await self._transport.get_address(self._hrp, self._derivation_path, True)
        return address
