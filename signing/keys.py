from __future__ import annotations

import hashlib
from enum import Enum

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigdecode_string, sigencode_string_canonize
from eth_account import Account
from eth_utils import ValidationError, keccak

from errors import CorruptKeyError, MalformedInputError

COSMOS_COIN_TYPE = 118
SECRET_SIZE = 32


class Digest(Enum):
    """Message hash signed over: secp256k1 keys use SHA-256, ethsecp256k1 keys Keccak-256."""

    SHA256 = "sha256"
    KECCAK256 = "keccak256"


def message_digest(data: bytes, digest: Digest = Digest.SHA256) -> bytes:
    if digest is Digest.KECCAK256:
        return keccak(data)
    return hashlib.sha256(data).digest()


def derivation_path_for(coin: int = COSMOS_COIN_TYPE) -> str:
    return f"m/44'/{coin}'/0'/0/0"


def key_from_mnemonic(mnemonic: str, coin: int = COSMOS_COIN_TYPE) -> bytes:
    """Derive the first account secret of a BIP39 mnemonic under m/44'/<coin>'/0'/0/0."""
    Account.enable_unaudited_hdwallet_features()
    try:
        acct = Account.from_mnemonic(" ".join(mnemonic.split()), account_path=derivation_path_for(coin))
    except (ValidationError, ValueError) as exc:
        raise MalformedInputError(f"Invalid mnemonic: {exc}") from exc
    return bytes(acct.key)


def signing_key(secret: bytes, label: str = "<memory>") -> SigningKey:
    if len(secret) != SECRET_SIZE:
        raise CorruptKeyError(label, f"expected {SECRET_SIZE} bytes, got {len(secret)}")
    try:
        return SigningKey.from_string(secret, curve=SECP256k1)
    except (MalformedPointError, ValueError) as exc:
        raise CorruptKeyError(label, str(exc)) from exc


def sign_bytes(secret: bytes, data: bytes, label: str = "<memory>", digest: Digest = Digest.SHA256) -> bytes:
    """
    ECDSA-secp256k1 over the message digest: low-S, 64-byte r||s.

    The RFC6979 nonce is derived with HMAC-SHA256 whatever the message digest.
    """
    sk = signing_key(secret, label)
    return sk.sign_digest_deterministic(message_digest(data, digest), hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize)


def compressed_public_key(secret: bytes, label: str = "<memory>") -> bytes:
    return signing_key(secret, label).get_verifying_key().to_string("compressed")


def uncompressed_public_key(secret: bytes, label: str = "<memory>") -> bytes:
    return signing_key(secret, label).get_verifying_key().to_string("uncompressed")


def decompress_public_key(public_key: bytes) -> bytes:
    try:
        return VerifyingKey.from_string(public_key, curve=SECP256k1).to_string("uncompressed")
    except (MalformedPointError, ValueError) as exc:
        raise MalformedInputError(f"Invalid secp256k1 public key: {exc}") from exc


def verify_signature(public_key: bytes, data: bytes, signature: bytes, digest: Digest = Digest.SHA256) -> bool:
    try:
        vk = VerifyingKey.from_string(public_key, curve=SECP256k1)
    except (MalformedPointError, ValueError) as exc:
        raise MalformedInputError(f"Invalid secp256k1 public key: {exc}") from exc
    try:
        return vk.verify_digest(signature, message_digest(data, digest), sigdecode=sigdecode_string)
    except BadSignatureError:
        return False
