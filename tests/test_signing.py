import asyncio
import base64
import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest
from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SIGN_MODE_DIRECT, SIGN_MODE_LEGACY_AMINO_JSON
from ecdsa import SECP256k1
from keyring.errors import KeyringError

from errors import BackendError, CorruptKeyError, KeyNotFoundError, MalformedInputError
from signing import (
    Account,
    AddressType,
    BackendKind,
    LedgerBackend,
    MemoryBackend,
    MemoryKeyStore,
    OsKeyringBackend,
    account_from_selector,
    backend_from_selector,
    decode_bech32,
    parse_backend_selector,
    rebech32,
    sign_mode_for,
)
from signing import keys
from tests.helpers import MNEMONIC, MNEMONIC_ADDRESS


def test_known_mnemonic_derives_expected_address(memory_backend):
    account = asyncio.run(Account.create(memory_backend))
    assert account.address("cosmos") == MNEMONIC_ADDRESS


def test_rebech32_keeps_payload():
    osmo = rebech32(MNEMONIC_ADDRESS, "osmo")
    assert osmo.startswith("osmo1")
    assert decode_bech32(osmo)[1] == decode_bech32(MNEMONIC_ADDRESS)[1]


def test_ethereum_address_type_uses_keccak(memory_backend):
    account = asyncio.run(Account.create(memory_backend, AddressType.ETHEREUM))
    cosmos = asyncio.run(Account.create(memory_backend))
    assert len(account.address_bytes) == 20
    assert account.address_bytes != cosmos.address_bytes


def test_invalid_mnemonic_is_malformed_input():
    with pytest.raises(MalformedInputError):
        keys.key_from_mnemonic("not a real mnemonic at all")


def test_memory_signature_is_deterministic_low_s_and_verifies(memory_backend):
    data = b"sign me"
    sig1 = asyncio.run(memory_backend.sign(data))
    sig2 = asyncio.run(memory_backend.sign(data))
    assert sig1 == sig2
    assert len(sig1) == 64
    assert int.from_bytes(sig1[32:], "big") <= SECP256k1.order // 2
    pub = asyncio.run(memory_backend.public_key())
    assert keys.verify_signature(pub, data, sig1)
    assert not keys.verify_signature(pub, data + b"!", sig1)


def test_memory_backend_missing_label():
    backend = MemoryBackend("nobody", MemoryKeyStore())
    with pytest.raises(KeyNotFoundError) as e:
        asyncio.run(backend.sign(b"x"))
    assert e.value.code == "key_not_found"


def test_memory_backend_corrupt_secret():
    store = MemoryKeyStore()
    store.save("short", b"\x01" * 5)
    with pytest.raises(CorruptKeyError):
        asyncio.run(MemoryBackend("short", store).public_key())


def test_public_key_shapes(memory_backend):
    compressed = asyncio.run(memory_backend.public_key())
    uncompressed = asyncio.run(memory_backend.uncompressed_public_key())
    assert len(compressed) == 33 and compressed[0] in (2, 3)
    assert len(uncompressed) == 65 and uncompressed[0] == 4
    assert keys.decompress_public_key(compressed) == uncompressed


def test_os_keyring_backend_round_trip(monkeypatch):
    vault = {}
    monkeypatch.setattr("keyring.set_password", lambda svc, label, value: vault.__setitem__((svc, label), value))
    monkeypatch.setattr("keyring.get_password", lambda svc, label: vault.get((svc, label)))

    from signing import save_key_to_os_from_mnemonic

    pub = save_key_to_os_from_mnemonic(MNEMONIC, "bob", service="rover-test")
    backend = OsKeyringBackend("bob", service="rover-test")
    assert asyncio.run(backend.public_key()) == pub
    sig = asyncio.run(backend.sign(b"payload"))
    assert keys.verify_signature(pub, b"payload", sig)


def test_os_keyring_backend_errors(monkeypatch):
    monkeypatch.setattr("keyring.get_password", lambda svc, label: None)
    with pytest.raises(KeyNotFoundError):
        asyncio.run(OsKeyringBackend("missing").sign(b"x"))

    monkeypatch.setattr("keyring.get_password", lambda svc, label: "***not base64***")
    with pytest.raises(CorruptKeyError):
        asyncio.run(OsKeyringBackend("garbled").sign(b"x"))

    def unavailable(svc, label):
        raise KeyringError("no backend")

    monkeypatch.setattr("keyring.get_password", unavailable)
    with pytest.raises(BackendError):
        asyncio.run(OsKeyringBackend("any").sign(b"x"))


def test_os_keyring_stores_base64(monkeypatch):
    stored = {}
    monkeypatch.setattr("keyring.set_password", lambda svc, label, value: stored.setdefault("v", value))
    from signing import save_key_to_os

    save_key_to_os(b"\x07" * 32, "carol")
    assert base64.b64decode(stored["v"]) == b"\x07" * 32


def test_ledger_backend_delegates_to_transport():
    transport = MagicMock()
    pub = bytes.fromhex("02" + "11" * 32)
    transport.get_address = AsyncMock(return_value=(pub, "cosmos1xyz"))
    transport.sign = AsyncMock(return_value=b"\x01" * 64)
    backend = LedgerBackend(transport)

    assert asyncio.run(backend.sign(b"{}")) == b"\x01" * 64
    transport.sign.assert_awaited_once_with("m/44'/118'/0'/0/0", b"{}")
    assert asyncio.run(backend.public_key()) == pub
    asyncio.run(backend.public_key())
    assert transport.get_address.await_count == 1


def test_sign_mode_is_bound_to_backend(app_ctx, memory_store):
    assert sign_mode_for(LedgerBackend(MagicMock())) == SIGN_MODE_LEGACY_AMINO_JSON
    assert sign_mode_for(OsKeyringBackend("x")) == SIGN_MODE_DIRECT
    assert sign_mode_for(MemoryBackend("x", memory_store)) == SIGN_MODE_DIRECT
    assert sign_mode_for(backend_from_selector("Ledger", app_ctx)) == SIGN_MODE_LEGACY_AMINO_JSON
    assert sign_mode_for(backend_from_selector("os:alice", app_ctx)) == SIGN_MODE_DIRECT
    assert sign_mode_for(backend_from_selector("Memory:alice", app_ctx)) == SIGN_MODE_DIRECT


def test_parse_backend_selector():
    assert parse_backend_selector("ledger").kind is BackendKind.LEDGER
    sel = parse_backend_selector("OS:My Key")
    assert (sel.kind, sel.label) == (BackendKind.OS, "My Key")
    assert str(parse_backend_selector("memory:a")) == "Memory:a"
    for bad in ("", "Yubikey:x", "Os", "Os:", "Ledger:x"):
        with pytest.raises(MalformedInputError):
            parse_backend_selector(bad)


def test_factory_memory_backend_uses_context_store(app_ctx):
    app_ctx.memory_keys.save("k", hashlib.sha256(b"seed").digest())
    backend = backend_from_selector("Memory:k", app_ctx)
    assert len(asyncio.run(backend.public_key())) == 33


def test_account_from_selector_uses_configured_address_type(app_ctx, monkeypatch):
    app_ctx.memory_keys.save_from_mnemonic("alice", MNEMONIC)
    default = asyncio.run(account_from_selector("Memory:alice", app_ctx))
    assert default.address_type is AddressType.COSMOS
    assert default.address("cosmos") == MNEMONIC_ADDRESS

    monkeypatch.setattr(app_ctx.settings, "ROVER_ADDRESS_TYPE", AddressType.ETHEREUM)
    eth = asyncio.run(account_from_selector("Memory:alice", app_ctx))
    assert eth.address_type is AddressType.ETHEREUM
    assert eth.address_bytes != default.address_bytes
    assert asyncio.run(account_from_selector("Memory:alice", app_ctx, AddressType.COSMOS)).address_bytes == default.address_bytes


def test_memory_store_labels_and_remove():
    store = MemoryKeyStore()
    store.save("b", b"\x01" * 32)
    store.save("a", b"\x02" * 32)
    assert store.labels() == ["a", "b"]
    store.remove("a")
    store.remove("missing")
    assert store.labels() == ["b"]
    with pytest.raises(KeyNotFoundError):
        store.get("a")
