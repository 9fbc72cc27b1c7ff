from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.v1beta1 import tx_pb2
from google.protobuf.any_pb2 import Any

from signing.account import Account, AddressType
from signing.keys import Digest
from signing.base import sign_mode_for

from .msgs import MsgLike, to_any

DEFAULT_GAS_LIMIT = 400_000

SECP256K1_PUBKEY_TYPE = "/cosmos.crypto.secp256k1.PubKey"
ETHSECP256K1_PUBKEY_TYPE = "/ethermint.crypto.v1.ethsecp256k1.PubKey"


@dataclass(frozen=True)
class Fee:
    amount: int
    denom: str

    def coins(self) -> list:
        if self.amount == 0:
            return []
        return [CoinProto(denom=self.denom, amount=str(self.amount))]


@dataclass(frozen=True)
class UnsignedTx:
    """A transaction body and auth info that has not been signed yet."""

    body: tx_pb2.TxBody
    auth_info: tx_pb2.AuthInfo
    chain_id: str
    account_number: int

    @property
    def sign_mode(self) -> int:
        return self.auth_info.signer_infos[0].mode_info.single.mode

    @property
    def sequence(self) -> int:
        return self.auth_info.signer_infos[0].sequence

    @property
    def digest(self) -> Digest:
        return digest_for_public_key(self.auth_info.signer_infos[0].public_key)

    @property
    def gas_limit(self) -> int:
        return self.auth_info.fee.gas_limit

    @property
    def messages(self) -> Sequence[Any]:
        return list(self.body.messages)

    def body_bytes(self) -> bytes:
        return self.body.SerializeToString()

    def auth_info_bytes(self) -> bytes:
        return self.auth_info.SerializeToString()

    def with_gas(self, gas_limit: int) -> "UnsignedTx":
        auth_info = tx_pb2.AuthInfo()
        auth_info.CopyFrom(self.auth_info)
        auth_info.fee.gas_limit = int(gas_limit)
        body = tx_pb2.TxBody()
        body.CopyFrom(self.body)
        return UnsignedTx(body, auth_info, self.chain_id, self.account_number)


def digest_for_public_key(public_key: Any) -> Digest:
    """ethsecp256k1 keys verify over Keccak-256, plain secp256k1 keys over SHA-256."""
    return Digest.KECCAK256 if public_key.type_url == ETHSECP256K1_PUBKEY_TYPE else Digest.SHA256


def pack_public_key(public_key: bytes, address_type: AddressType = AddressType.COSMOS) -> Any:
    """Wrap a compressed key in the `Any` the chain expects for this address type."""
    type_url = SECP256K1_PUBKEY_TYPE if address_type is AddressType.COSMOS else ETHSECP256K1_PUBKEY_TYPE
    return Any(type_url=type_url, value=PubKey(key=public_key).SerializeToString())


def build(
    messages: Sequence[MsgLike],
    fee: Fee,
    fee_granter: Optional[str],
    sequence: int,
    account_number: int,
    public_key: Any,
    sign_mode: int,
    *,
    chain_id: str,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    memo: str = "",
) -> UnsignedTx:
    body = tx_pb2.TxBody(messages=[to_any(m) for m in messages], memo=memo)
    signer = tx_pb2.SignerInfo(
        public_key=public_key,
        mode_info=tx_pb2.ModeInfo(single=tx_pb2.ModeInfo.Single(mode=sign_mode)),
        sequence=sequence,
    )
    tx_fee = tx_pb2.Fee(amount=fee.coins(), gas_limit=gas_limit, granter=fee_granter or "")
    auth_info = tx_pb2.AuthInfo(signer_infos=[signer], fee=tx_fee)
    return UnsignedTx(body, auth_info, chain_id, account_number)


async def build_for_account(
    account: Account,
    messages: Sequence[MsgLike],
    fee: Fee,
    *,
    sequence: int,
    account_number: int,
    chain_id: str,
    on_chain_public_key: Optional[Any] = None,
    fee_granter: Optional[str] = None,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    memo: str = "",
) -> UnsignedTx:
    """
    Build for a signing account.

    Accounts that never sent a transaction have no key on chain; the backend's
    own key is injected for those.
    """
    public_key = on_chain_public_key
    if public_key is None:
        public_key = pack_public_key(await account.backend.public_key(), account.address_type)
    return build(
        messages,
        fee,
        fee_granter,
        sequence,
        account_number,
        public_key,
        sign_mode_for(account.backend),
        chain_id=chain_id,
        gas_limit=gas_limit,
        memo=memo,
    )
