from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional, Type, TypeVar

from cosmpy.protos.cosmos.auth.v1beta1 import auth_pb2, query_pb2
from cosmpy.protos.cosmos.vesting.v1beta1 import vesting_pb2
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.any_pb2 import Any
from google.protobuf.message import DecodeError, Message

from errors import AccountNotFoundError, BroadcastRejectedError, EstimationFailedError, MalformedInputError, RpcError

from .rpc import BroadcastResult, RpcClient

SIMULATE_PATH = "/app/simulate"

M = TypeVar("M", bound=Message)

_VESTING_TYPES = {
    "/cosmos.vesting.v1beta1.ContinuousVestingAccount": vesting_pb2.ContinuousVestingAccount,
    "/cosmos.vesting.v1beta1.DelayedVestingAccount": vesting_pb2.DelayedVestingAccount,
    "/cosmos.vesting.v1beta1.PeriodicVestingAccount": vesting_pb2.PeriodicVestingAccount,
    "/cosmos.vesting.v1beta1.PermanentLockedAccount": vesting_pb2.PermanentLockedAccount,
}


def _eth_account_class() -> Type[Message]:
    """
    EthAccount as seen by account lookup: only `base_account = 1` is declared.

    Ethermint stores the code hash in field 2 as a string while Injective uses
    bytes; leaving it undeclared keeps it an unknown field on either chain.
    """
    FieldProto = descriptor_pb2.FieldDescriptorProto
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="rover/accounts/eth_account.proto",
        package="rover.accounts",
        syntax="proto3",
        dependency=[auth_pb2.DESCRIPTOR.name],
    )
    msg = file_proto.message_type.add(name="EthAccount")
    msg.field.add(
        name="base_account",
        number=1,
        label=FieldProto.LABEL_OPTIONAL,
        type=FieldProto.TYPE_MESSAGE,
        type_name=".cosmos.auth.v1beta1.BaseAccount",
    )
    pool = descriptor_pool.Default()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("rover.accounts.EthAccount"))


_EthAccount = _eth_account_class()


def query_path(request: Message) -> str:
    """`cosmos.auth.v1beta1.QueryAccountRequest` -> `/cosmos.auth.v1beta1.Query/Account`."""
    name = request.DESCRIPTOR.full_name
    return "/" + name.replace(".Query", ".Query/").replace("Request", "")


async def query(client: RpcClient, request: Message, response_cls: Type[M]) -> M:
    result = await client.abci_query(query_path(request), request.SerializeToString())
    if result.code != 0:
        raise RpcError(client.endpoint, f"{query_path(request)}: {result.log}", rpc_code=result.code)
    response = response_cls()
    try:
        response.ParseFromString(result.value)
    except DecodeError as e:
        raise MalformedInputError(f"Cannot decode {response_cls.DESCRIPTOR.full_name}: {e}") from e
    return response


@dataclass(frozen=True)
class AccountState:
    address: str
    account_number: int
    sequence: int
    public_key: Optional[Any] = None


def _base_account(packed: Any) -> auth_pb2.BaseAccount:
    url = packed.type_url
    if url == "/cosmos.auth.v1beta1.BaseAccount":
        base = auth_pb2.BaseAccount()
        base.ParseFromString(packed.value)
        return base
    if url in _VESTING_TYPES:
        vesting = _VESTING_TYPES[url]()
        vesting.ParseFromString(packed.value)
        return vesting.base_vesting_account.base_account
    if url == "/cosmos.auth.v1beta1.ModuleAccount":
        module = auth_pb2.ModuleAccount()
        module.ParseFromString(packed.value)
        return module.base_account
    if url.endswith(".EthAccount"):
        eth = _EthAccount()
        eth.ParseFromString(packed.value)
        return eth.base_account
    raise MalformedInputError(f"Unsupported account type {url}", {"type_url": url})


async def account_state(client: RpcClient, address: str) -> AccountState:
    request = query_pb2.QueryAccountRequest(address=address)
    result = await client.abci_query(query_path(request), request.SerializeToString())
    if result.code != 0:
        if "not found" in result.log.lower():
            raise AccountNotFoundError(address, result.log)
        raise RpcError(client.endpoint, f"account query: {result.log}", rpc_code=result.code)
    response = query_pb2.QueryAccountResponse()
    try:
        response.ParseFromString(result.value)
        base = _base_account(response.account)
    except DecodeError as e:
        raise MalformedInputError(f"Cannot decode account {address}: {e}") from e
    return AccountState(
        address=address,
        account_number=base.account_number,
        sequence=base.sequence,
        public_key=base.pub_key if base.HasField("pub_key") else None,
    )


async def simulate(client: RpcClient, tx_bytes: bytes) -> int:
    """Gas the node consumed executing the tx, without committing it."""
    result = await client.abci_query(SIMULATE_PATH, tx_bytes)
    if result.code != 0:
        raise EstimationFailedError(
            f"Simulation rejected by {client.endpoint}: {result.log}",
            {"endpoint": client.endpoint, "code": result.code, "log": result.log},
        )
    try:
        return int(json.loads(result.value)["gas_info"]["gas_used"])
    except (ValueError, KeyError, TypeError) as e:
        raise EstimationFailedError(f"Unexpected simulation response from {client.endpoint}", {"endpoint": client.endpoint}) from e


async def broadcast(client: RpcClient, tx_bytes: bytes) -> BroadcastResult:
    result = await client.broadcast_tx_sync(tx_bytes)
    if result.code != 0:
        raise BroadcastRejectedError(client.endpoint, result.code, result.log, result.tx_hash)
    return result
