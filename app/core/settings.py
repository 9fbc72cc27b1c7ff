"""
Rover Settings

Validated, typed configuration loaded from the environment (and a `.env`
file when present). Misconfigurations are reported at startup instead of
halfway through a signing flow.

Usage:
    from app.core.settings import settings

    racer = EndpointRacer(timeout=settings.QUERY_TIMEOUT_SEC)
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Tuple

from dotenv import load_dotenv

from errors import MalformedInputError
from ledger.apdu import parse_derivation_path
from signing.account import AddressType
from signing.keys import derivation_path_for
from signing.os_keyring import DEFAULT_SERVICE

load_dotenv()


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid configuration for {field}={value!r}: {message}")


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int | None = None) -> int | None:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip(), 0)
    except ValueError:
        return default


def _parse_float(value: str | None, default: float | None = None) -> float | None:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_csv_list(value: str | None) -> Tuple[str, ...]:
    """Comma-separated list; order is kept, blanks and duplicates dropped."""
    if not value:
        return ()
    return tuple(dict.fromkeys(v.strip() for v in value.split(",") if v.strip()))


def _parse_enum(enum_cls: type, value: str | None, default: Enum) -> Any:
    raw = (value or "").strip().lower()
    for member in enum_cls:
        if member.value == raw:
            return member
    return default


def _get_version_from_pyproject() -> str:
    try:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "0.0.0"))
    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"


@dataclass
class Settings:
    """
    All configuration, loaded and validated at instantiation time.
    """

    VERSION: str = field(default_factory=_get_version_from_pyproject)

    # Key custody
    ROVER_KEYRING_SERVICE: str = field(default_factory=lambda: os.getenv("ROVER_KEYRING_SERVICE", DEFAULT_SERVICE).strip())
    ROVER_DERIVATION_PATH: str = field(default_factory=lambda: os.getenv("ROVER_DERIVATION_PATH", derivation_path_for()).strip())
    ROVER_LEDGER_HRP: str = field(default_factory=lambda: os.getenv("ROVER_LEDGER_HRP", "cosmos").strip())
    ROVER_ADDRESS_TYPE: AddressType = field(
        default_factory=lambda: _parse_enum(AddressType, os.getenv("ROVER_ADDRESS_TYPE"), AddressType.COSMOS)
    )

    # Transactions
    DEFAULT_GAS_LIMIT: int = field(default_factory=lambda: _parse_int(os.getenv("DEFAULT_GAS_LIMIT"), 400_000) or 400_000)

    # Network
    QUERY_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("QUERY_TIMEOUT_SEC"), 2.0) or 2.0)
    BROADCAST_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("BROADCAST_TIMEOUT_SEC"), 5.0) or 5.0)
    RPC_ENDPOINTS: Tuple[str, ...] = field(default_factory=lambda: _parse_csv_list(os.getenv("RPC_ENDPOINTS")))
    RPC_OVERRIDE: str | None = field(default_factory=lambda: (os.getenv("RPC_OVERRIDE") or "").strip() or None)
    RPC_OVERRIDE_FIRST: bool = field(default_factory=lambda: _parse_bool(os.getenv("RPC_OVERRIDE_FIRST"), False))
    ENDPOINT_CACHE_TTL_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("ENDPOINT_CACHE_TTL_SEC"), 300.0) or 300.0)

    # Observability
    AUDIT_DB_PATH: str | None = field(default_factory=lambda: os.getenv("AUDIT_DB_PATH"))
    ROVER_LOG_LEVEL: str = field(default_factory=lambda: os.getenv("ROVER_LOG_LEVEL", "info").strip().lower())
    ROVER_SERVICE_NAME: str = field(default_factory=lambda: os.getenv("ROVER_SERVICE_NAME", "rover").strip())

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        errors: list[str] = []

        try:
            parse_derivation_path(self.ROVER_DERIVATION_PATH)
        except MalformedInputError as e:
            errors.append(f"ROVER_DERIVATION_PATH: {e}")

        if not self.ROVER_LEDGER_HRP or not self.ROVER_LEDGER_HRP.isascii():
            errors.append("ROVER_LEDGER_HRP must be a non-empty ASCII prefix")
        if not self.ROVER_KEYRING_SERVICE:
            errors.append("ROVER_KEYRING_SERVICE must not be empty")
        if self.DEFAULT_GAS_LIMIT <= 0:
            errors.append(f"DEFAULT_GAS_LIMIT must be positive, got {self.DEFAULT_GAS_LIMIT}")
        if self.QUERY_TIMEOUT_SEC <= 0 or self.BROADCAST_TIMEOUT_SEC <= 0:
            errors.append("QUERY_TIMEOUT_SEC and BROADCAST_TIMEOUT_SEC must be positive")
        if self.ENDPOINT_CACHE_TTL_SEC < 0:
            errors.append("ENDPOINT_CACHE_TTL_SEC must not be negative")
        for ep in self.RPC_ENDPOINTS + ((self.RPC_OVERRIDE,) if self.RPC_OVERRIDE else ()):
            if not ep.startswith(("http://", "https://")):
                errors.append(f"RPC endpoint must be an http(s) URL: {ep}")

        if errors:
            raise SettingsValidationError("MULTIPLE", None, "; ".join(errors))

    def to_dict(self) -> dict[str, Any]:
        """Settings as plain values (secrets redacted)."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if any(s in f.name for s in ("SECRET", "PASSWORD", "MNEMONIC", "TOKEN")):
                result[f.name] = "***REDACTED***" if value else None
            elif isinstance(value, tuple):
                result[f.name] = list(value)
            elif isinstance(value, Enum):
                result[f.name] = value.value
            else:
                result[f.name] = value
        return result


settings = Settings()
