"""
Transaction message variants.

Every message this client constructs is one of the dataclasses below; anything
else travels as `OpaqueMsg`, a type URL plus already-encoded protobuf bytes that
the signing path never inspects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Sequence, Union

from cosmpy.protos.cosmos.authz.v1beta1 import authz_pb2, tx_pb2 as authz_tx_pb2
from cosmpy.protos.cosmos.bank.v1beta1 import tx_pb2 as bank_tx_pb2
from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmos.distribution.v1beta1 import tx_pb2 as distribution_tx_pb2
from cosmpy.protos.cosmos.feegrant.v1beta1 import feegrant_pb2, tx_pb2 as feegrant_tx_pb2
from cosmpy.protos.cosmos.gov.v1beta1 import tx_pb2 as gov_tx_pb2
from cosmpy.protos.cosmos.staking.v1beta1 import authz_pb2 as staking_authz_pb2, tx_pb2 as staking_tx_pb2
from cosmpy.protos.cosmwasm.wasm.v1 import tx_pb2 as wasm_tx_pb2
from cosmpy.protos.ibc.applications.transfer.v1 import tx_pb2 as ibc_transfer_tx_pb2
from google.protobuf.any_pb2 import Any
from google.protobuf.message import Message

from errors import MalformedInputError


def pack_any(message: Message) -> Any:
    packed = Any()
    packed.Pack(message, type_url_prefix="/")
    return packed


def type_url_of(message_cls: type) -> str:
    return "/" + message_cls.DESCRIPTOR.full_name


def after_one_year(now: datetime | None = None) -> datetime:
    """Midnight UTC of tomorrow, plus 365 days."""
    now = now or datetime.now(timezone.utc)
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return tomorrow + timedelta(days=365)


@dataclass(frozen=True)
class Coin:
    amount: int
    denom: str

    @classmethod
    def parse(cls, raw: str) -> "Coin":
        """Parse `1000uatom` style strings."""
        s = (raw or "").strip()
        i = 0
        while i < len(s) and s[i].isdigit():
            i += 1
        if i == 0 or i == len(s):
            raise MalformedInputError(f"Invalid coin: {raw!r}")
        return cls(int(s[:i]), s[i:])

    def to_proto(self) -> CoinProto:
        if self.amount < 0:
            raise MalformedInputError("Coin amount must not be negative", {"amount": self.amount})
        return CoinProto(denom=self.denom, amount=str(self.amount))


class TxMsg(ABC):
    @abstractmethod
    def to_proto(self) -> Message:
        raise NotImplementedError

    @property
    def type_url(self) -> str:
        return "/" + self.to_proto().DESCRIPTOR.full_name

    def to_any(self) -> Any:
        return pack_any(self.to_proto())


@dataclass(frozen=True)
class BankSend(TxMsg):
    from_address: str
    to_address: str
    amount: Sequence[Coin]

    def to_proto(self) -> Message:
        return bank_tx_pb2.MsgSend(
            from_address=self.from_address,
            to_address=self.to_address,
            amount=[c.to_proto() for c in self.amount],
        )


@dataclass(frozen=True)
class Delegate(TxMsg):
    delegator_address: str
    validator_address: str
    amount: Coin

    def to_proto(self) -> Message:
        return staking_tx_pb2.MsgDelegate(
            delegator_address=self.delegator_address,
            validator_address=self.validator_address,
            amount=self.amount.to_proto(),
        )


@dataclass(frozen=True)
class Undelegate(TxMsg):
    delegator_address: str
    validator_address: str
    amount: Coin

    def to_proto(self) -> Message:
        return staking_tx_pb2.MsgUndelegate(
            delegator_address=self.delegator_address,
            validator_address=self.validator_address,
            amount=self.amount.to_proto(),
        )


@dataclass(frozen=True)
class Redelegate(TxMsg):
    delegator_address: str
    validator_src_address: str
    validator_dst_address: str
    amount: Coin

    def to_proto(self) -> Message:
        return staking_tx_pb2.MsgBeginRedelegate(
            delegator_address=self.delegator_address,
            validator_src_address=self.validator_src_address,
            validator_dst_address=self.validator_dst_address,
            amount=self.amount.to_proto(),
        )


@dataclass(frozen=True)
class WithdrawReward(TxMsg):
    delegator_address: str
    validator_address: str

    def to_proto(self) -> Message:
        return distribution_tx_pb2.MsgWithdrawDelegatorReward(
            delegator_address=self.delegator_address,
            validator_address=self.validator_address,
        )


@dataclass(frozen=True)
class Vote(TxMsg):
    proposal_id: int
    voter: str
    option: int

    def to_proto(self) -> Message:
        return gov_tx_pb2.MsgVote(proposal_id=self.proposal_id, voter=self.voter, option=self.option)


@dataclass(frozen=True)
class IbcTransfer(TxMsg):
    source_channel: str
    token: Coin
    sender: str
    receiver: str
    timeout_timestamp: int
    source_port: str = "transfer"

    @classmethod
    def with_timeout(cls, source_channel: str, token: Coin, sender: str, receiver: str, minutes: int = 10) -> "IbcTransfer":
        deadline = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        return cls(source_channel, token, sender, receiver, int(deadline.timestamp()) * 1_000_000_000)

    def to_proto(self) -> Message:
        msg = ibc_transfer_tx_pb2.MsgTransfer(
            source_port=self.source_port,
            source_channel=self.source_channel,
            token=self.token.to_proto(),
            sender=self.sender,
            receiver=self.receiver,
            timeout_timestamp=self.timeout_timestamp,
        )
        # an explicitly empty height; amino renders it as {}
        msg.timeout_height.SetInParent()
        return msg


@dataclass(frozen=True)
class ExecuteContract(TxMsg):
    sender: str
    contract: str
    msg: bytes
    funds: Sequence[Coin] = ()

    def to_proto(self) -> Message:
        return wasm_tx_pb2.MsgExecuteContract(
            sender=self.sender,
            contract=self.contract,
            msg=self.msg,
            funds=[c.to_proto() for c in self.funds],
        )


@dataclass(frozen=True)
class AuthzGrant(TxMsg):
    granter: str
    grantee: str
    msg_type_url: str
    expiration: datetime = field(default_factory=after_one_year)

    def to_proto(self) -> Message:
        grant = authz_pb2.Grant(authorization=pack_any(authz_pb2.GenericAuthorization(msg=self.msg_type_url)))
        grant.expiration.FromDatetime(self.expiration)
        return authz_tx_pb2.MsgGrant(granter=self.granter, grantee=self.grantee, grant=grant)


@dataclass(frozen=True)
class RestakeGrant(TxMsg):
    """Delegate-only stake authorization restricted to one validator."""

    granter: str
    grantee: str
    validator: str
    expiration: datetime = field(default_factory=after_one_year)

    def to_proto(self) -> Message:
        auth = staking_authz_pb2.StakeAuthorization(
            authorization_type=staking_authz_pb2.AUTHORIZATION_TYPE_DELEGATE,
            allow_list=staking_authz_pb2.StakeAuthorization.Validators(address=[self.validator]),
        )
        grant = authz_pb2.Grant(authorization=pack_any(auth))
        grant.expiration.FromDatetime(self.expiration)
        return authz_tx_pb2.MsgGrant(granter=self.granter, grantee=self.grantee, grant=grant)


@dataclass(frozen=True)
class AuthzRevoke(TxMsg):
    granter: str
    grantee: str
    msg_type_url: str

    def to_proto(self) -> Message:
        return authz_tx_pb2.MsgRevoke(granter=self.granter, grantee=self.grantee, msg_type_url=self.msg_type_url)


@dataclass(frozen=True)
class AuthzExec(TxMsg):
    grantee: str
    msgs: Sequence["MsgLike"]

    def to_proto(self) -> Message:
        return authz_tx_pb2.MsgExec(grantee=self.grantee, msgs=[to_any(m) for m in self.msgs])


@dataclass(frozen=True)
class FeeGrant(TxMsg):
    granter: str
    grantee: str
    expiration: datetime = field(default_factory=after_one_year)

    def to_proto(self) -> Message:
        allowance = feegrant_pb2.BasicAllowance()
        allowance.expiration.FromDatetime(self.expiration)
        return feegrant_tx_pb2.MsgGrantAllowance(granter=self.granter, grantee=self.grantee, allowance=pack_any(allowance))


@dataclass(frozen=True)
class FeeRevoke(TxMsg):
    granter: str
    grantee: str

    def to_proto(self) -> Message:
        return feegrant_tx_pb2.MsgRevokeAllowance(granter=self.granter, grantee=self.grantee)


@dataclass(frozen=True)
class OpaqueMsg:
    type_url: str
    value: bytes

    def to_any(self) -> Any:
        return Any(type_url=self.type_url, value=self.value)


MsgLike = Union[TxMsg, OpaqueMsg, Any]


def to_any(msg: MsgLike) -> Any:
    if isinstance(msg, Any):
        return msg
    return msg.to_any()


def unit_transfer(from_address: str, to_address: str, denom: str) -> BankSend:
    return BankSend(from_address, to_address, [Coin(1, denom)])


USUAL_AUTHZ_TYPES = (
    type_url_of(distribution_tx_pb2.MsgWithdrawDelegatorReward),
    type_url_of(staking_tx_pb2.MsgDelegate),
    type_url_of(gov_tx_pb2.MsgVote),
)


def usual_authz_grants(granter: str, grantee: str) -> List[AuthzGrant]:
    return [AuthzGrant(granter, grantee, t) for t in USUAL_AUTHZ_TYPES]


def usual_authz_revokes(granter: str, grantee: str) -> List[AuthzRevoke]:
    return [AuthzRevoke(granter, grantee, t) for t in USUAL_AUTHZ_TYPES]


def restake_revoke(granter: str, grantee: str) -> AuthzRevoke:
    return AuthzRevoke(granter, grantee, type_url_of(staking_tx_pb2.MsgDelegate))


def grant_exec(grantee: str, msgs: Sequence[MsgLike]) -> AuthzExec:
    return AuthzExec(grantee, list(msgs))


def restake_grant(granter: str, grantee: str, validator: str) -> RestakeGrant:
    return RestakeGrant(granter, grantee, validator)
