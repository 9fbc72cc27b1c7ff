from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import bech32
from Crypto.Hash import RIPEMD160
from eth_utils import keccak

from errors import MalformedInputError

from .base import KeyBackend

ADDRESS_SIZE = 20


class AddressType(Enum):
    """Address derivation rule."""

    COSMOS = "cosmos"
    ETHEREUM = "ethereum"


def address_bytes_from_public_key(public_key: bytes, address_type: AddressType) -> bytes:
    """
    COSMOS: RIPEMD160(SHA256(compressed key)).
    ETHEREUM: last 20 bytes of Keccak256(uncompressed key without the 0x04 prefix).
    """
    if address_type is AddressType.COSMOS:
        if len(public_key) != 33:
            raise MalformedInputError("Cosmos addresses derive from a 33-byte compressed key", {"length": len(public_key)})
        return RIPEMD160.new(hashlib.sha256(public_key).digest()).digest()
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise MalformedInputError("Ethereum addresses derive from an uncompressed key", {"length": len(public_key)})
    return keccak(public_key)[-ADDRESS_SIZE:]


def encode_bech32(prefix: str, data: bytes) -> str:
    words = bech32.convertbits(data, 8, 5)
    encoded = bech32.bech32_encode(prefix, words) if words is not None else None
    if not encoded:
        raise MalformedInputError("Could not bech32-encode address", {"prefix": prefix})
    return encoded


def decode_bech32(address: str) -> Tuple[str, bytes]:
    hrp, words = bech32.bech32_decode(address)
    if hrp is None or words is None:
        raise MalformedInputError("Invalid bech32 address", {"address": address})
    data = bech32.convertbits(words, 5, 8, False)
    if data is None:
        raise MalformedInputError("Invalid bech32 payload", {"address": address})
    return hrp, bytes(data)


def rebech32(address: str, prefix: str) -> str:
    """Re-encode an address under another human-readable prefix."""
    _, data = decode_bech32(address)
    return encode_bech32(prefix, data)


@dataclass(frozen=True)
class Account:
    address_bytes: bytes
    backend: KeyBackend
    address_type: AddressType = AddressType.COSMOS

    @classmethod
    async def create(cls, backend: KeyBackend, address_type: AddressType = AddressType.COSMOS) -> "Account":
        if address_type is AddressType.COSMOS:
            public_key = await backend.public_key()
        else:
            public_key = await backend.uncompressed_public_key()
        return cls(address_bytes_from_public_key(public_key, address_type), backend, address_type)

    def address(self, prefix: str) -> str:
        return encode_bech32(prefix, self.address_bytes)
