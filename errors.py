from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
import keyring.errors
from ecdsa.der import UnexpectedDER
from ledgerblue.commException import CommException


@dataclass
class AppError(Exception):
    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None, *, code: str = "not_found") -> None:
        super().__init__(code, message, data or {})


class KeyNotFoundError(NotFoundError):
    def __init__(self, label: str) -> None:
        super().__init__(f"Key '{label}' is not present in the key store", {"label": label}, code="key_not_found")


class AccountNotFoundError(NotFoundError):
    def __init__(self, address: str, detail: str = "") -> None:
        super().__init__(
            f"Account {address} does not exist on chain",
            {"address": address, "detail": detail},
            code="account_not_found",
        )


class MalformedInputError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None, *, code: str = "malformed_input") -> None:
        super().__init__(code, message, data or {})


class CorruptKeyError(MalformedInputError):
    def __init__(self, label: str, detail: str) -> None:
        super().__init__(f"Stored key '{label}' is corrupt: {detail}", {"label": label}, code="corrupt_key")


class DeviceError(AppError):
    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(
            "device_error",
            message or f"Ledger device returned status 0x{status:04x}",
            {"status": status},
        )

    @property
    def status(self) -> int:
        return int(self.data["status"])


class BackendError(AppError):
    def __init__(self, backend: str, message: str) -> None:
        super().__init__("backend_error", message, {"backend": backend})


class NetworkError(AppError):
    def __init__(self, endpoint: str, message: str, *, code: str = "network_error") -> None:
        super().__init__(code, message, {"endpoint": endpoint})


class RpcError(NetworkError):
    """A node answered, but with a JSON-RPC error or a non-zero ABCI code."""

    def __init__(self, endpoint: str, message: str, *, rpc_code: int | None = None) -> None:
        super().__init__(endpoint, message, code="rpc_error")
        self.data["rpc_code"] = rpc_code


class EstimationFailedError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("estimation_failed", message, data or {})


class NoEndpointAvailableError(AppError):
    def __init__(self, operation: str, failures: Dict[str, str]) -> None:
        super().__init__(
            "no_endpoint_available",
            f"No endpoint available for {operation} ({len(failures)} tried)",
            {"operation": operation, "failures": failures},
        )


class UnregisteredMessageTypeError(AppError):
    def __init__(self, type_url: str) -> None:
        super().__init__(
            "unregistered_message_type",
            f"Message type {type_url} has no legacy amino registration; refusing to sign it in amino mode",
            {"type_url": type_url},
        )


class BroadcastRejectedError(AppError):
    def __init__(self, endpoint: str, code: int, log: str, tx_hash: str = "") -> None:
        super().__init__(
            "broadcast_rejected",
            f"Transaction rejected by {endpoint} with code {code}: {log}",
            {"endpoint": endpoint, "code": code, "log": log, "tx_hash": tx_hash},
        )


def classify_exception(e: Exception) -> AppError:
    """
    Map common library / network issues into stable error codes.
    """
    if isinstance(e, AppError):
        return e
    if isinstance(e, asyncio.TimeoutError):
        return AppError("network_timeout", str(e) or "operation timed out", {})
    if isinstance(e, aiohttp.ClientResponseError):
        return AppError("network_http_error", str(e), {"status": e.status})
    if isinstance(e, aiohttp.ClientError):
        return AppError("network_error", str(e), {})
    if isinstance(e, CommException):
        return DeviceError(int(e.sw), str(e))
    if isinstance(e, keyring.errors.PasswordDeleteError):
        return AppError("keyring_delete_failed", str(e), {})
    if isinstance(e, keyring.errors.KeyringError):
        return AppError("keyring_error", str(e), {})
    if isinstance(e, UnexpectedDER):
        return AppError("malformed_der", str(e), {})

    return AppError("unknown_error", str(e), {})
