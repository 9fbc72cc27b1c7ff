"""
Legacy amino JSON sign documents.

Hardware signers display and sign a canonical JSON rendering of the
transaction instead of protobuf bytes. The rendering has to be byte-identical
to what the chain reconstructs, so every object is rebuilt with sorted keys
and serialized compactly.
"""

from __future__ import annotations

import json
from typing import Any as AnyValue, Dict, Iterable, List, Sequence

from google.protobuf.any_pb2 import Any
from google.protobuf.json_format import MessageToDict

from errors import MalformedInputError, UnregisteredMessageTypeError

TYPE_KEY = "@type"
AMINO_PREFIX = "cosmos-sdk/"

LEGACY_AMINO_TYPES = frozenset(
    {
        "/cosmos.bank.v1beta1.MsgSend",
        "/cosmos.bank.v1beta1.MsgMultiSend",
        "/cosmos.staking.v1beta1.MsgDelegate",
        "/cosmos.staking.v1beta1.MsgUndelegate",
        "/cosmos.staking.v1beta1.MsgBeginRedelegate",
        "/cosmos.distribution.v1beta1.MsgWithdrawDelegatorReward",
        "/cosmos.distribution.v1beta1.MsgSetWithdrawAddress",
        "/cosmos.distribution.v1beta1.MsgWithdrawValidatorCommission",
        "/cosmos.gov.v1beta1.MsgVote",
        "/cosmos.authz.v1beta1.MsgRevoke",
        "/cosmos.feegrant.v1beta1.MsgRevokeAllowance",
        "/ibc.applications.transfer.v1.MsgTransfer",
    }
)

# amino names that differ from the protobuf message name
AMINO_NAME_REMAPS = {
    "MsgWithdrawDelegatorReward": "MsgWithdrawDelegationReward",
    "MsgSetWithdrawAddress": "MsgModifyWithdrawAddress",
}

_STRINGIFIED_SUFFIXES = ("_id", "_timestamp")
_STRINGIFIED_KEYS = ("id", "timestamp")


def amino_name(type_url: str) -> str:
    if type_url not in LEGACY_AMINO_TYPES:
        raise UnregisteredMessageTypeError(type_url)
    short = type_url.rsplit(".", 1)[-1]
    return AMINO_PREFIX + AMINO_NAME_REMAPS.get(short, short)


def strip_type(tree: AnyValue) -> AnyValue:
    """Return a copy of `tree` with every `@type` key removed, at any depth."""
    if isinstance(tree, dict):
        return {k: strip_type(v) for k, v in tree.items() if k != TYPE_KEY}
    if isinstance(tree, list):
        return [strip_type(v) for v in tree]
    return tree


def _forced_string(key: str) -> bool:
    return key in _STRINGIFIED_KEYS or key.endswith(_STRINGIFIED_SUFFIXES)


def normalize(tree: AnyValue, key: str = "") -> AnyValue:
    """
    Rebuild `tree` in sorted key order.

    Null values become empty objects and scalar numbers under id/timestamp
    keys become strings.
    """
    if tree is None:
        return {}
    if isinstance(tree, dict):
        return {k: normalize(tree[k], k) for k in sorted(tree)}
    if isinstance(tree, list):
        return [normalize(v, key) for v in tree]
    if _forced_string(key) and isinstance(tree, (int, float)) and not isinstance(tree, bool):
        return str(tree)
    return tree


def message_json(msg: Any) -> Dict[str, AnyValue]:
    """Expand a packed message into its proto3 JSON tree (including `@type`)."""
    try:
        return MessageToDict(msg, preserving_proto_field_name=True, use_integers_for_enums=True)
    except (TypeError, KeyError) as e:
        raise MalformedInputError(f"Cannot expand message {msg.type_url}: {e}", {"type_url": msg.type_url}) from e


def amino_msg(msg: Any) -> Dict[str, AnyValue]:
    name = amino_name(msg.type_url)
    return {"type": name, "value": normalize(strip_type(message_json(msg)))}


def amino_msgs(msgs: Iterable[Any]) -> List[Dict[str, AnyValue]]:
    # resolve every name first so nothing is expanded for a doomed tx
    msgs = list(msgs)
    for m in msgs:
        amino_name(m.type_url)
    return [amino_msg(m) for m in msgs]


def sign_doc(
    *,
    account_number: int,
    chain_id: str,
    fee_amount: Sequence[Dict[str, str]],
    gas: int,
    memo: str,
    msgs: Iterable[Any],
    sequence: int,
) -> Dict[str, AnyValue]:
    return {
        "account_number": str(account_number),
        "chain_id": chain_id,
        "fee": {"amount": [normalize(c) for c in fee_amount], "gas": str(gas)},
        "memo": memo,
        "msgs": amino_msgs(msgs),
        "sequence": str(sequence),
    }


def to_bytes(doc: Dict[str, AnyValue]) -> bytes:
    """Compact serialization; key order is taken from the dicts as built."""
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
