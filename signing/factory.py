from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from errors import MalformedInputError

from .account import Account, AddressType
from .base import KeyBackend
from .ledger_device import LedgerBackend
from .memory_keystore import MemoryBackend
from .os_keyring import OsKeyringBackend

if TYPE_CHECKING:
    from app.core.container import AppContext


class BackendKind(Enum):
    LEDGER = "Ledger"
    OS = "Os"
    MEMORY = "Memory"


@dataclass(frozen=True)
class BackendSelector:
    kind: BackendKind
    label: Optional[str] = None

    def __str__(self) -> str:
        return self.kind.value if self.label is None else f"{self.kind.value}:{self.label}"


def parse_backend_selector(raw: str) -> BackendSelector:
    """
    Parse `Ledger`, `Os:<label>` or `Memory:<label>`.

    The kind is matched case-insensitively; labels are kept verbatim.
    """
    s = (raw or "").strip()
    kind_raw, sep, label = s.partition(":")
    kinds = {k.value.lower(): k for k in BackendKind}
    kind = kinds.get(kind_raw.strip().lower())
    if kind is None:
        raise MalformedInputError(f"Unsupported key backend: {raw!r}", {"selector": raw})
    if kind is BackendKind.LEDGER:
        if sep:
            raise MalformedInputError("Ledger backend takes no label", {"selector": raw})
        return BackendSelector(kind)
    if not label:
        raise MalformedInputError(f"{kind.value} backend requires a label", {"selector": raw})
    return BackendSelector(kind, label)


def backend_from_selector(raw: str, ctx: "AppContext") -> KeyBackend:
    """Build the backend a selector names, wired to the context's shared resources."""
    sel = parse_backend_selector(raw)
    if sel.kind is BackendKind.LEDGER:
        return LedgerBackend(
            ctx.ledger_transport,
            derivation_path=ctx.settings.ROVER_DERIVATION_PATH,
            hrp=ctx.settings.ROVER_LEDGER_HRP,
        )
    if sel.label is None:
        raise MalformedInputError(f"{sel.kind.value} backend requires a label", {"selector": raw})
    if sel.kind is BackendKind.OS:
        return OsKeyringBackend(sel.label, service=ctx.settings.ROVER_KEYRING_SERVICE)
    return MemoryBackend(sel.label, ctx.memory_keys)


async def account_from_selector(raw: str, ctx: "AppContext", address_type: Optional[AddressType] = None) -> Account:
    """Backend plus address derivation, defaulting to the configured address type."""
    backend = backend_from_selector(raw, ctx)
    return await Account.create(backend, address_type or ctx.settings.ROVER_ADDRESS_TYPE)
