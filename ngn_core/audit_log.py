"""In-process append-only interaction log, keyed by session id."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .stress import parse_timestamp_ms
from .types import AUDIT_ACTIONS, AuditEntry


class AuditLog:
    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def record(
        self,
        action: str,
        target: str,
        session_id: str,
        item_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> AuditEntry:
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"unknown audit action: {action!r}")
        entry = AuditEntry(
            timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
            action=action,
            target=target,
            session_id=session_id,
            item_id=item_id,
            metadata=dict(metadata) if metadata else None,
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def get_log(self) -> tuple[AuditEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get_entries_for_session(self, session_id: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.session_id == session_id]

    def get_entries_for_item(self, item_id: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.item_id == item_id]

    def get_recent_entries(self, window_ms: int = 60_000, now: Optional[datetime] = None) -> List[AuditEntry]:
        cutoff = parse_timestamp_ms((now or datetime.now(timezone.utc)) - timedelta(milliseconds=window_ms))
        with self._lock:
            snapshot = list(self._entries)
        out = []
        for e in snapshot:
            ms = parse_timestamp_ms(e.timestamp)
            if ms is not None and ms >= cutoff:
                out.append(e)
        return out

    def clear(self) -> None:
        with self._lock:
            self._entries = []
