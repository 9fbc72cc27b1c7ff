from __future__ import annotations

import threading
from typing import Dict, List

from errors import KeyNotFoundError

from . import keys
from .base import KeyBackend


class MemoryKeyStore:
    """
    Process-memory key store.

    Owned by the application context and handed to every backend that needs it;
    secrets live only as long as the owning context.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: Dict[str, bytes] = {}

    def save(self, label: str, secret: bytes) -> None:
        with self._lock:
            self._keys[label] = bytes(secret)

    def save_from_mnemonic(self, label: str, mnemonic: str, coin: int = keys.COSMOS_COIN_TYPE) -> None:
        self.save(label, keys.key_from_mnemonic(mnemonic, coin))

    def get(self, label: str) -> bytes:
        with self._lock:
            secret = self._keys.get(label)
        if secret is None:
            raise KeyNotFoundError(label)
        return secret

    def remove(self, label: str) -> None:
        with self._lock:
            self._keys.pop(label, None)

    def labels(self) -> List[str]:
        with self._lock:
            return sorted(self._keys)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()


class MemoryBackend(KeyBackend):
    def __init__(self, label: str, store: MemoryKeyStore) -> None:
        self._label = label
        self._store = store

    @property
    def selector(self) -> str:
        return f"Memory:{self._label}"

    async def sign(self, data: bytes, digest: keys.Digest = keys.Digest.SHA256) -> bytes:
        return keys.sign_bytes(self._store.get(self._label), data, self._label, digest)

    async def public_key(self) -> bytes:
        return keys.compressed_public_key(self._store.get(self._label), self._label)

    async def uncompressed_public_key(self) -> bytes:
        return keys.uncompressed_public_key(self._store.get(self._label), self._label)
