from __future__ import annotations

from typing import Optional

from app.core.settings import Settings, settings as default_settings
from ledger.transport import LedgerTransport
from network.endpoints import EndpointCache
from network.racer import EndpointRacer
from observability import AuditLog, configure_logging
from signing.memory_keystore import MemoryKeyStore


class AppContext:
    """Shared process-wide resources, handed explicitly to the components that need them."""

    def __init__(self, settings: Optional[Settings] = None, *, ledger_transport: Optional[LedgerTransport] = None) -> None:
        self.settings = settings or default_settings
        configure_logging(self.settings.ROVER_LOG_LEVEL, service=self.settings.ROVER_SERVICE_NAME, version=self.settings.VERSION)

        # Observability
        self.audit_log = AuditLog(self.settings.AUDIT_DB_PATH)

        # Keys
        self.memory_keys = MemoryKeyStore()
        self._ledger_transport = ledger_transport

        # Network
        self.racer = EndpointRacer(timeout=self.settings.QUERY_TIMEOUT_SEC)
        self.endpoint_cache = EndpointCache(ttl_seconds=self.settings.ENDPOINT_CACHE_TTL_SEC)

    @property
    def ledger_transport(self) -> LedgerTransport:
        # the device is opened on first exchange, not here
        if self._ledger_transport is None:
            self._ledger_transport = LedgerTransport()
        return self._ledger_transport

    def close(self) -> None:
        if self._ledger_transport is not None:
            self._ledger_transport.close()
