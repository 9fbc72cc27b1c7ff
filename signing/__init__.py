from .account import Account, AddressType, decode_bech32, encode_bech32, rebech32
from .base import KeyBackend, sign_mode_for
from .factory import BackendKind, BackendSelector, account_from_selector, backend_from_selector, parse_backend_selector
from .ledger_device import LedgerBackend
from .memory_keystore import MemoryBackend, MemoryKeyStore
from .os_keyring import OsKeyringBackend, save_key_to_os, save_key_to_os_from_mnemonic

__all__ = [
    "Account",
    "AddressType",
    "BackendKind",
    "BackendSelector",
    "KeyBackend",
    "LedgerBackend",
    "MemoryBackend",
    "MemoryKeyStore",
    "OsKeyringBackend",
    "account_from_selector",
    "backend_from_selector",
    "decode_bech32",
    "encode_bech32",
    "parse_backend_selector",
    "rebech32",
    "save_key_to_os",
    "save_key_to_os_from_mnemonic",
    "sign_mode_for",
]
