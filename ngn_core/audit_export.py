"""Helpers to export a session's interaction log in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any
import csv
import io
import json

from .types import AuditEntry

_FIELDS: tuple[str, ...] = (
    "timestamp",
    "session_id",
    "item_id",
    "action",
    "target",
    "metadata",
)


def _normalize_entry(entry: Any) -> Dict[str, Any]:
    raw = entry.__dict__ if isinstance(entry, AuditEntry) else (entry or {})
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = raw.get(key)
        if key == "metadata":
            out[key] = dict(val) if isinstance(val, dict) else {}
        else:
            out[key] = "" if val is None else str(val)
    return out


def to_json(entries: Iterable[Any]) -> Dict[str, Any]:
    """Return a JSON-safe payload for audit export."""

    normalized: List[Dict[str, Any]] = [_normalize_entry(e) for e in entries]
    return {"events": normalized}


def to_csv(entries: Iterable[Any]) -> str:
    """Render entries as CSV with a fixed header; metadata is JSON-encoded."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in (_normalize_entry(e) for e in entries):
        row["metadata"] = json.dumps(row["metadata"], sort_keys=True) if row["metadata"] else ""
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
