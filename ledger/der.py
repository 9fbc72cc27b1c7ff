from __future__ import annotations

from ecdsa import der
from ecdsa.der import UnexpectedDER

from errors import MalformedInputError

FIELD_SIZE = 32


def _to_field(value: int, name: str) -> bytes:
    if value < 0:
        raise MalformedInputError(f"DER signature {name} is negative")
    try:
        return value.to_bytes(FIELD_SIZE, "big")
    except OverflowError as exc:
        raise MalformedInputError(f"DER signature {name} is wider than {FIELD_SIZE} bytes") from exc


def der_to_fixed(signature: bytes) -> bytes:
    """
    Convert a device DER signature into the 64-byte r||s form Cosmos expects.

    Layout: 0x30 <len> 0x02 <len r> <r> 0x02 <len s> <s>
    Leading zero bytes of r and s are dropped and each is left-padded to 32 bytes.
    Anything other than a SEQUENCE of exactly two INTEGERs is rejected.
    """
    try:
        body, rest = der.remove_sequence(bytes(signature))
        if rest:
            raise MalformedInputError("Trailing bytes after DER signature", {"extra": len(rest)})
        r, body = der.remove_integer(body)
        s, body = der.remove_integer(body)
    except UnexpectedDER as exc:
        raise MalformedInputError(f"Malformed DER signature: {exc}") from exc
    if body:
        raise MalformedInputError("DER signature sequence must contain exactly two integers")
    return _to_field(r, "r") + _to_field(s, "s")
