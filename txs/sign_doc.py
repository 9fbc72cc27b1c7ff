from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SIGN_MODE_DIRECT, SIGN_MODE_LEGACY_AMINO_JSON
from cosmpy.protos.cosmos.tx.v1beta1 import tx_pb2
from google.protobuf.message import DecodeError

from errors import MalformedInputError
from signing import keys
from signing.base import KeyBackend

from . import amino
from .builder import UnsignedTx, digest_for_public_key

SIGNATURE_SIZE = 64


class SignState(Enum):
    UNSIGNED = "unsigned"
    DOC_GENERATED = "doc_generated"
    SIGNED = "signed"


@dataclass(frozen=True)
class SignDoc:
    mode: int
    payload: bytes


@dataclass(frozen=True)
class SignedTx:
    body_bytes: bytes
    auth_info_bytes: bytes
    signature: bytes

    def to_tx_raw(self) -> tx_pb2.TxRaw:
        return tx_pb2.TxRaw(body_bytes=self.body_bytes, auth_info_bytes=self.auth_info_bytes, signatures=[self.signature])

    def to_bytes(self) -> bytes:
        return self.to_tx_raw().SerializeToString()

    @property
    def tx_hash(self) -> str:
        return hashlib.sha256(self.to_bytes()).hexdigest().upper()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SignedTx":
        tx = tx_pb2.TxRaw()
        try:
            tx.ParseFromString(raw)
        except DecodeError as e:
            raise MalformedInputError(f"Invalid TxRaw bytes: {e}") from e
        if len(tx.signatures) != 1:
            raise MalformedInputError("Expected exactly one signature", {"signatures": len(tx.signatures)})
        return cls(tx.body_bytes, tx.auth_info_bytes, tx.signatures[0])


def generate(tx: UnsignedTx) -> SignDoc:
    """Bytes the signer commits to, for the tx's sign mode."""
    if tx.sign_mode == SIGN_MODE_DIRECT:
        doc = tx_pb2.SignDoc(
            body_bytes=tx.body_bytes(),
            auth_info_bytes=tx.auth_info_bytes(),
            chain_id=tx.chain_id,
            account_number=tx.account_number,
        )
        return SignDoc(SIGN_MODE_DIRECT, doc.SerializeToString())
    if tx.sign_mode == SIGN_MODE_LEGACY_AMINO_JSON:
        doc = amino.sign_doc(
            account_number=tx.account_number,
            chain_id=tx.chain_id,
            fee_amount=[{"amount": c.amount, "denom": c.denom} for c in tx.auth_info.fee.amount],
            gas=tx.gas_limit,
            memo=tx.body.memo,
            msgs=tx.messages,
            sequence=tx.sequence,
        )
        return SignDoc(SIGN_MODE_LEGACY_AMINO_JSON, amino.to_bytes(doc))
    raise MalformedInputError(f"Unsupported sign mode: {tx.sign_mode}", {"sign_mode": tx.sign_mode})


class SigningAttempt:
    """
    One signing attempt: UNSIGNED -> DOC_GENERATED -> SIGNED.

    The body and auth info are serialized once, when the doc is generated, and
    the signed tx carries exactly those bytes.
    """

    def __init__(self, tx: UnsignedTx) -> None:
        self.tx = tx
        self.state = SignState.UNSIGNED
        self._doc: Optional[SignDoc] = None
        self._body_bytes = b""
        self._auth_info_bytes = b""
        self.signed: Optional[SignedTx] = None

    def generate(self) -> SignDoc:
        if self.state is not SignState.UNSIGNED:
            raise MalformedInputError(f"Sign doc already generated (state={self.state.value})")
        self._body_bytes = self.tx.body_bytes()
        self._auth_info_bytes = self.tx.auth_info_bytes()
        self._doc = generate(self.tx)
        self.state = SignState.DOC_GENERATED
        return self._doc

    async def sign(self, backend: KeyBackend) -> SignedTx:
        if backend.sign_mode != self.tx.sign_mode:
            raise MalformedInputError(
                f"{backend.selector} cannot sign in mode {self.tx.sign_mode}",
                {"backend": backend.selector, "tx_sign_mode": self.tx.sign_mode, "backend_sign_mode": backend.sign_mode},
            )
        doc = self.generate() if self.state is SignState.UNSIGNED else self._doc
        if doc is None:
            raise MalformedInputError(f"No sign doc to sign (state={self.state.value})")
        signature = await backend.sign(doc.payload, self.tx.digest)
        if len(signature) != SIGNATURE_SIZE:
            raise MalformedInputError("Backend returned a signature of the wrong size", {"length": len(signature)})
        self.signed = SignedTx(self._body_bytes, self._auth_info_bytes, signature)
        self.state = SignState.SIGNED
        return self.signed


async def sign(tx: UnsignedTx, backend: KeyBackend) -> SignedTx:
    return await SigningAttempt(tx).sign(backend)


def verify(signed: SignedTx, public_key: bytes, *, chain_id: str, account_number: int) -> bool:
    """
    Check a direct-mode signature against a compressed or uncompressed key.

    The message digest follows the signer key type recorded in the auth info.
    """
    auth_info = tx_pb2.AuthInfo()
    try:
        auth_info.ParseFromString(signed.auth_info_bytes)
    except DecodeError as e:
        raise MalformedInputError(f"Invalid auth info bytes: {e}") from e
    if not auth_info.signer_infos:
        raise MalformedInputError("Transaction has no signer info")
    doc = tx_pb2.SignDoc(
        body_bytes=signed.body_bytes,
        auth_info_bytes=signed.auth_info_bytes,
        chain_id=chain_id,
        account_number=account_number,
    )
    return keys.verify_signature(public_key, doc.SerializeToString(), signed.signature, digest_for_public_key(auth_info.signer_infos[0].public_key))


def write_base64(signed: SignedTx, path: Union[str, Path]) -> None:
    Path(path).write_text(base64.b64encode(signed.to_bytes()).decode("ascii"))


def read_base64(path: Union[str, Path]) -> SignedTx:
    text = Path(path).read_text().strip()
    try:
        raw = base64.b64decode(text, validate=True)
    except ValueError as e:
        raise MalformedInputError(f"Invalid base64 transaction in {path}") from e
    return SignedTx.from_bytes(raw)
