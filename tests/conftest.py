import os
import sys
from unittest.mock import MagicMock

import pytest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.core.container import AppContext
from app.core.settings import Settings
from signing.memory_keystore import MemoryBackend, MemoryKeyStore
from tests.helpers import MNEMONIC


@pytest.fixture
def memory_store():
    store = MemoryKeyStore()
    store.save_from_mnemonic("alice", MNEMONIC)
    return store


@pytest.fixture
def memory_backend(memory_store):
    return MemoryBackend("alice", memory_store)


@pytest.fixture
def app_ctx(monkeypatch, tmp_path):
    for k in ("RPC_ENDPOINTS", "RPC_OVERRIDE", "RPC_OVERRIDE_FIRST", "DEFAULT_GAS_LIMIT"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("AUDIT_DB_PATH", str(tmp_path / "audit.db"))
    return AppContext(Settings(), ledger_transport=MagicMock())
