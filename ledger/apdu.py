"""
APDU command construction for the Cosmos Ledger application.

Reference: https://github.com/cosmos/ledger-cosmos/blob/main/docs/APDUSPEC.md
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Tuple

from errors import MalformedInputError

CLA = 0x55
CHUNK_SIZE = 64
SW_OK = 0x9000
HARDENED = 0x80000000


class InsType(IntEnum):
    GET_VERSION = 0x00
    SIGN_SECP256K1 = 0x02
    GET_ADDR_SECP256K1 = 0x04


class SignPayloadType(IntEnum):
    INIT = 0x00
    ADD = 0x01
    LAST = 0x02


@dataclass(frozen=True)
class APDUCommand:
    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""

    def serialize(self) -> bytes:
        if len(self.data) > 255:
            raise MalformedInputError("APDU payload exceeds 255 bytes", {"length": len(self.data)})
        return bytes([self.cla, self.ins, self.p1, self.p2, len(self.data)]) + self.data


@dataclass(frozen=True)
class APDUResponse:
    status: int
    data: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == SW_OK

    @classmethod
    def from_raw(cls, raw: bytes) -> "APDUResponse":
        if len(raw) < 2:
            raise MalformedInputError("APDU response shorter than the status word")
        return cls(status=int.from_bytes(raw[-2:], "big"), data=bytes(raw[:-2]))


def parse_derivation_path(path: str) -> List[int]:
    """Parse "m/44'/118'/0'/0/0" into child indexes with the hardened bit applied."""
    p = (path or "").strip()
    if not p.startswith("m/"):
        raise MalformedInputError("Derivation path must start with m/", {"path": path})
    children: List[int] = []
    for elt in p[2:].split("/"):
        hardened = elt.endswith("'") or elt.endswith("h")
        index_str = elt[:-1] if hardened else elt
        if not index_str.isdigit():
            raise MalformedInputError("Invalid derivation path element", {"path": path, "element": elt})
        index = int(index_str)
        if index >= HARDENED:
            raise MalformedInputError("Derivation path index out of range", {"path": path, "element": elt})
        children.append(index | HARDENED if hardened else index)
    return children


def pack_derivation_path(path: str) -> bytes:
    # the Cosmos app takes each child as a little-endian u32, without a count prefix
    return b"".join(struct.pack("<I", child) for child in parse_derivation_path(path))


def get_version() -> APDUCommand:
    return APDUCommand(CLA, InsType.GET_VERSION, 0x00, 0x00)


def get_address(hrp: str, derivation_path: str, show_address: bool = False) -> APDUCommand:
    hrp_bytes = hrp.encode("ascii")
    data = bytes([len(hrp_bytes)]) + hrp_bytes + pack_derivation_path(derivation_path)
    return APDUCommand(CLA, InsType.GET_ADDR_SECP256K1, 0x01 if show_address else 0x00, 0x00, data)


def sign_payload(derivation_path: str, payload: bytes) -> List[APDUCommand]:
    """
    Split a signing request into the init command plus <=64-byte payload chunks.

    Only the final chunk is flagged LAST; every earlier chunk is flagged ADD.
    """
    if not payload:
        raise MalformedInputError("Refusing to sign an empty payload")
    commands = [APDUCommand(CLA, InsType.SIGN_SECP256K1, SignPayloadType.INIT, 0x00, pack_derivation_path(derivation_path))]
    chunks = [payload[i : i + CHUNK_SIZE] for i in range(0, len(payload), CHUNK_SIZE)]
    for i, chunk in enumerate(chunks):
        desc = SignPayloadType.LAST if i + 1 == len(chunks) else SignPayloadType.ADD
        commands.append(APDUCommand(CLA, InsType.SIGN_SECP256K1, desc, 0x00, chunk))
    return commands


def parse_version(data: bytes) -> Tuple[int, int, int, int, int]:
    """Return (test_mode, major, minor, patch, device_locked)."""
    if len(data) < 9:
        raise MalformedInputError("Version reply too short", {"length": len(data)})
    return (data[0],) + struct.unpack("<HHHH", data[1:9])


def parse_address(data: bytes) -> Tuple[bytes, str]:
    """Return (33-byte compressed public key, bech32 address)."""
    if len(data) < 33:
        raise MalformedInputError("Address reply too short", {"length": len(data)})
    try:
        address = data[33:].decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedInputError("Address reply is not ASCII") from exc
    return bytes(data[:33]), address
