from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

_LOGGER = logging.getLogger("rover")

_SENSITIVE_MARKERS = ("private", "secret", "mnemonic", "password", "seed")

_SERVICE = {"name": "rover", "version": "0.0.0"}


def configure_logging(level: str | None = None, *, service: str | None = None, version: str | None = None) -> None:
    lvl = (level or "info").strip().upper()
    logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format="%(message)s")
    if service:
        _SERVICE["name"] = service.strip()
    if version:
        _SERVICE["version"] = version


def build_log_context(*, tool: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "service": _SERVICE["name"],
        "version": _SERVICE["version"],
        "tool": tool,
        "request_id": request_id or uuid.uuid4().hex[:12],
    }


def _redact(data: Any) -> Any:
    if isinstance(data, dict):
        out: Dict[str, Any] = {}
        for k, v in data.items():
            if any(m in str(k).lower() for m in _SENSITIVE_MARKERS):
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(data, (list, tuple)):
        return [_redact(v) for v in data]
    if isinstance(data, bytes):
        return data.hex()
    return data


def log_event(event: str, *, ctx: Dict[str, Any], data: Dict[str, Any] | None = None, level: int = logging.INFO) -> None:
    """
    Emit one structured JSON log line.

    Keys that look like secret material are redacted before serialization.
    """
    payload = {"event": event, **ctx, "data": _redact(data or {})}
    _LOGGER.log(level, json.dumps(payload, sort_keys=True, default=str))
