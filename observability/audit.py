from __future__ import annotations

import json
import os
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional


class AuditLog:
    """
    Optional SQLite audit log of broadcast attempts.

    OFF by default. Enable by setting `AUDIT_DB_PATH` (or `ROVER_AUDIT_DB_PATH`).
    Each signed transaction is recorded with its hash before it is broadcast, then
    again with the outcome, so a broadcast whose response was lost can still be
    looked up on chain.

    Never stores key material; only hashes, endpoints and node responses.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._explicit_path = db_path

    def enabled(self) -> bool:
        return bool(self._db_path())

    def append(
        self,
        *,
        ts_ms: int,
        request_id: str,
        chain_id: str,
        tx_hash: str,
        stage: str,
        ok: bool,
        endpoint: str | None = None,
        error_code: str | None = None,
        summary: Dict[str, Any] | None = None,
    ) -> None:
        conn = self._get_conn()
        if conn is None:
            return
        payload = json.dumps(summary or {}, sort_keys=True)
        with self._lock:
            conn.execute(
                """
                INSERT INTO broadcast_events(
                    ts_ms, request_id, chain_id, tx_hash, stage, ok, endpoint, error_code, summary_json
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(ts_ms),
                    str(request_id),
                    str(chain_id),
                    str(tx_hash),
                    str(stage),
                    1 if ok else 0,
                    endpoint,
                    error_code,
                    payload,
                ),
            )
            conn.commit()

    def events_for(self, tx_hash: str) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        if conn is None:
            return []
        with self._lock:
            rows = conn.execute(
                "SELECT ts_ms, stage, ok, endpoint, error_code, summary_json FROM broadcast_events "
                "WHERE tx_hash = ? ORDER BY id",
                (tx_hash,),
            ).fetchall()
        return [
            {
                "ts_ms": r[0],
                "stage": r[1],
                "ok": bool(r[2]),
                "endpoint": r[3],
                "error_code": r[4],
                "summary": json.loads(r[5]),
            }
            for r in rows
        ]

    def _db_path(self) -> str:
        if self._explicit_path:
            return self._explicit_path
        return (os.getenv("ROVER_AUDIT_DB_PATH") or os.getenv("AUDIT_DB_PATH") or "").strip()

    def _get_conn(self) -> Optional[sqlite3.Connection]:
        path = self._db_path()
        if not path:
            return None
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(path, check_same_thread=False)
                self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS broadcast_events(
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts_ms INTEGER NOT NULL,
                        request_id TEXT NOT NULL,
                        chain_id TEXT NOT NULL,
                        tx_hash TEXT NOT NULL,
                        stage TEXT NOT NULL,
                        ok INTEGER NOT NULL,
                        endpoint TEXT,
                        error_code TEXT,
                        summary_json TEXT NOT NULL
                    )
                    """
                )
                self._conn.commit()
            return self._conn


def now_ms() -> int:
    return int(time.time() * 1000)
