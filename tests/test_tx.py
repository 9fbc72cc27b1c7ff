import asyncio
import hashlib
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SIGN_MODE_DIRECT, SIGN_MODE_LEGACY_AMINO_JSON
from cosmpy.protos.cosmos.tx.v1beta1 import tx_pb2
from ecdsa import SECP256k1, BadSignatureError, VerifyingKey
from ecdsa.util import sigdecode_string
from eth_utils import keccak

from errors import MalformedInputError, UnregisteredMessageTypeError
from signing import Account, AddressType, LedgerBackend
from signing.keys import Digest
from txs import (
    DEFAULT_GAS_LIMIT,
    BankSend,
    Coin,
    Fee,
    OpaqueMsg,
    SignedTx,
    SigningAttempt,
    SignState,
    build,
    build_for_account,
    pack_public_key,
    read_base64,
    sign,
    verify,
    write_base64,
)
from txs.builder import ETHSECP256K1_PUBKEY_TYPE, SECP256K1_PUBKEY_TYPE
from tests.helpers import CHAIN_ID, MNEMONIC_ADDRESS


def _send():
    return BankSend(MNEMONIC_ADDRESS, "cosmos1recipient", [Coin(10, "uatom")])


def _unsigned(backend, *, fee=Fee(0, "uatom"), on_chain=None, address_type=AddressType.COSMOS):
    account = asyncio.run(Account.create(backend, address_type))
    return asyncio.run(
        build_for_account(
            account,
            [_send()],
            fee,
            sequence=4,
            account_number=9,
            chain_id=CHAIN_ID,
            on_chain_public_key=on_chain,
        )
    )


def test_build_defaults(memory_backend):
    tx = _unsigned(memory_backend)
    assert tx.gas_limit == DEFAULT_GAS_LIMIT == 400_000
    assert list(tx.auth_info.fee.amount) == []
    assert tx.sign_mode == SIGN_MODE_DIRECT
    assert (tx.sequence, tx.account_number, tx.chain_id) == (4, 9, CHAIN_ID)
    assert tx.body.messages[0].type_url == "/cosmos.bank.v1beta1.MsgSend"


def test_build_fee_and_granter():
    pub = pack_public_key(b"\x02" + b"\x01" * 32)
    tx = build([_send()], Fee(2500, "uatom"), "cosmos1granter", 1, 2, pub, SIGN_MODE_DIRECT, chain_id=CHAIN_ID)
    assert [(c.amount, c.denom) for c in tx.auth_info.fee.amount] == [("2500", "uatom")]
    assert tx.auth_info.fee.granter == "cosmos1granter"


def test_local_public_key_injected_when_missing_on_chain(memory_backend):
    tx = _unsigned(memory_backend)
    packed = tx.auth_info.signer_infos[0].public_key
    assert packed.type_url == SECP256K1_PUBKEY_TYPE
    assert PubKey.FromString(packed.value).key == asyncio.run(memory_backend.public_key())


def test_on_chain_public_key_is_reused(memory_backend):
    on_chain = pack_public_key(b"\x03" + b"\x09" * 32)
    tx = _unsigned(memory_backend, on_chain=on_chain)
    assert tx.auth_info.signer_infos[0].public_key == on_chain


def test_ethereum_accounts_use_ethsecp256k1(memory_backend):
    tx = _unsigned(memory_backend, address_type=AddressType.ETHEREUM)
    assert tx.auth_info.signer_infos[0].public_key.type_url == ETHSECP256K1_PUBKEY_TYPE


def test_ethereum_accounts_sign_over_keccak(memory_backend):
    tx = _unsigned(memory_backend, address_type=AddressType.ETHEREUM)
    assert tx.digest is Digest.KECCAK256
    signed = asyncio.run(sign(tx, memory_backend))
    doc = tx_pb2.SignDoc(
        body_bytes=signed.body_bytes,
        auth_info_bytes=signed.auth_info_bytes,
        chain_id=CHAIN_ID,
        account_number=9,
    ).SerializeToString()
    pub = asyncio.run(memory_backend.public_key())
    vk = VerifyingKey.from_string(pub, curve=SECP256k1)
    assert vk.verify_digest(signed.signature, keccak(doc), sigdecode=sigdecode_string)
    with pytest.raises(BadSignatureError):
        vk.verify_digest(signed.signature, hashlib.sha256(doc).digest(), sigdecode=sigdecode_string)
    assert verify(signed, pub, chain_id=CHAIN_ID, account_number=9)


def test_cosmos_accounts_sign_over_sha256(memory_backend):
    assert _unsigned(memory_backend).digest is Digest.SHA256


def test_ledger_refuses_keccak_digest():
    transport = MagicMock()
    transport.sign = AsyncMock(return_value=b"\x01" * 64)
    with pytest.raises(MalformedInputError):
        asyncio.run(LedgerBackend(transport).sign(b"{}", Digest.KECCAK256))
    transport.sign.assert_not_awaited()


def test_with_gas_copies(memory_backend):
    tx = _unsigned(memory_backend)
    other = tx.with_gas(123)
    assert other.gas_limit == 123
    assert tx.gas_limit == DEFAULT_GAS_LIMIT
    assert other.body_bytes() == tx.body_bytes()


def test_direct_sign_verifies_and_hashes(memory_backend):
    tx = _unsigned(memory_backend)
    signed = asyncio.run(sign(tx, memory_backend))
    assert signed.body_bytes == tx.body_bytes()
    assert signed.auth_info_bytes == tx.auth_info_bytes()
    raw = tx_pb2.TxRaw.FromString(signed.to_bytes())
    assert len(raw.signatures) == 1 and len(raw.signatures[0]) == 64
    assert signed.tx_hash == hashlib.sha256(signed.to_bytes()).hexdigest().upper()

    pub = asyncio.run(memory_backend.public_key())
    assert verify(signed, pub, chain_id=CHAIN_ID, account_number=9)
    assert not verify(signed, pub, chain_id="other-chain", account_number=9)


def test_resigning_is_deterministic(memory_backend):
    tx = _unsigned(memory_backend)
    assert asyncio.run(sign(tx, memory_backend)) == asyncio.run(sign(tx, memory_backend))


def test_signing_attempt_states(memory_backend):
    attempt = SigningAttempt(_unsigned(memory_backend))
    assert attempt.state is SignState.UNSIGNED
    doc = attempt.generate()
    assert doc.mode == SIGN_MODE_DIRECT
    assert attempt.state is SignState.DOC_GENERATED
    with pytest.raises(MalformedInputError):
        attempt.generate()
    asyncio.run(attempt.sign(memory_backend))
    assert attempt.state is SignState.SIGNED
    assert attempt.signed is not None


def _ledger(signature=b"\x05" * 64):
    transport = MagicMock()
    transport.sign = AsyncMock(return_value=signature)
    transport.get_address = AsyncMock(return_value=(bytes.fromhex("02" + "11" * 32), "cosmos1ledger"))
    return LedgerBackend(transport), transport


def _ledger_tx(msgs, pub):
    return build(msgs, Fee(100, "uatom"), None, 0, 5, pack_public_key(pub), SIGN_MODE_LEGACY_AMINO_JSON, chain_id=CHAIN_ID)


def test_ledger_signs_amino_json():
    backend, transport = _ledger()
    tx = _ledger_tx([_send()], b"\x02" + b"\x11" * 32)
    signed = asyncio.run(sign(tx, backend))
    assert signed.signature == b"\x05" * 64
    payload = transport.sign.await_args.args[1]
    doc = json.loads(payload)
    assert list(doc) == ["account_number", "chain_id", "fee", "memo", "msgs", "sequence"]
    assert doc["fee"] == {"amount": [{"amount": "100", "denom": "uatom"}], "gas": "400000"}
    assert doc["msgs"][0]["type"] == "cosmos-sdk/MsgSend"


def test_unregistered_amino_type_never_reaches_device():
    backend, transport = _ledger()
    tx = _ledger_tx([OpaqueMsg("/custom.module.MsgThing", b"\x0a\x01x")], b"\x02" + b"\x11" * 32)
    with pytest.raises(UnregisteredMessageTypeError):
        asyncio.run(sign(tx, backend))
    transport.sign.assert_not_awaited()


def test_sign_mode_mismatch_is_refused(memory_backend):
    tx = _ledger_tx([_send()], b"\x02" + b"\x11" * 32)
    with pytest.raises(MalformedInputError):
        asyncio.run(sign(tx, memory_backend))


def test_base64_file_helpers(memory_backend, tmp_path):
    signed = asyncio.run(sign(_unsigned(memory_backend), memory_backend))
    path = tmp_path / "tx.b64"
    write_base64(signed, path)
    assert read_base64(path) == signed

    path.write_text("%%%")
    with pytest.raises(MalformedInputError):
        read_base64(path)


def test_signed_tx_from_bytes_requires_one_signature():
    raw = tx_pb2.TxRaw(body_bytes=b"", auth_info_bytes=b"").SerializeToString()
    with pytest.raises(MalformedInputError):
        SignedTx.from_bytes(raw)
