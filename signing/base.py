from __future__ import annotations

from abc import ABC, abstractmethod

from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SIGN_MODE_DIRECT

from .keys import Digest


class KeyBackend(ABC):
    """
    A minimal signing interface over one key custody backend.

    `sign` returns a fixed 64-byte r||s signature; the sign mode a backend can
    produce is fixed per implementation.
    """

    sign_mode: int = SIGN_MODE_DIRECT

    @property
    @abstractmethod
    def selector(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def sign(self, data: bytes, digest: Digest = Digest.SHA256) -> bytes:
        """Sign `data`, hashed with `digest` unless the signer hashes on its own."""
        raise NotImplementedError

    @abstractmethod
    async def public_key(self) -> bytes:
        """33-byte compressed secp256k1 public key."""
        raise NotImplementedError

    @abstractmethod
    async def uncompressed_public_key(self) -> bytes:
        """65-byte 0x04-prefixed secp256k1 public key."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.selector!r})"


def sign_mode_for(backend: KeyBackend) -> int:
    return backend.sign_mode
