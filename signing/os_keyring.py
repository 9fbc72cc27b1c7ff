from __future__ import annotations

import asyncio
import base64
import binascii

import keyring
from keyring.errors import KeyringError

from errors import BackendError, CorruptKeyError, KeyNotFoundError

from . import keys
from .base import KeyBackend

DEFAULT_SERVICE = "rover"


def save_key_to_os(secret: bytes, label: str, service: str = DEFAULT_SERVICE) -> None:
    try:
        keyring.set_password(service, label, base64.b64encode(secret).decode("ascii"))
    except KeyringError as exc:
        raise BackendError("os", f"Failed to store key '{label}' in the OS keyring: {exc}") from exc


def save_key_to_os_from_mnemonic(mnemonic: str, label: str, coin: int = keys.COSMOS_COIN_TYPE, service: str = DEFAULT_SERVICE) -> bytes:
    """Store the derived secret and return its compressed public key."""
    secret = keys.key_from_mnemonic(mnemonic, coin)
    save_key_to_os(secret, label, service)
    return keys.compressed_public_key(secret, label)


class OsKeyringBackend(KeyBackend):
    """
    Key held in the platform credential store, Base64-encoded at rest.
    """

    def __init__(self, label: str, service: str = DEFAULT_SERVICE) -> None:
        self._label = label
        self._service = service

    @property
    def selector(self) -> str:
        return f"Os:{self._label}"

    def _load_secret_sync(self) -> bytes:
        try:
            encoded = keyring.get_password(self._service, self._label)
        except KeyringError as exc:
            raise BackendError("os", f"OS keyring unavailable: {exc}") from exc
        if encoded is None:
            raise KeyNotFoundError(self._label)
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CorruptKeyError(self._label, "stored value is not valid base64") from exc

    async def _load_secret(self) -> bytes:
        return await asyncio.to_thread(self._load_secret_sync)

    async def sign(self, data: bytes, digest: keys.Digest = keys.Digest.SHA256) -> bytes:
        return keys.sign_bytes(await self._load_secret(), data, self._label, digest)

    async def public_key(self) -> bytes:
        return keys.compressed_public_key(await self._load_secret(), self._label)

    async def uncompressed_public_key(self) -> bytes:
        return keys.uncompressed_public_key(await self._load_secret(), self._label)
