"""JSON-file persistence for session snapshots and finished reports.

Snapshots are keyed by case-study id, so a learner reopening the same case
resumes where they left off.  Files live under ``DATA_DIR`` and are written
through a temp file and ``replace`` so a crash never leaves half a snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
REPORTS_DIR = DATA_ROOT / "reports"
SESSIONS_DIR = DATA_ROOT / "sessions"
REPORT_INDEX_PATH = DATA_ROOT / "reports_index.json"

_LOCK = threading.Lock()
_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

log = logging.getLogger(__name__)


def _ensure_dirs() -> None:
    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    SESSIONS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log.warning("unreadable JSON at %s", path)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _session_path(key: str) -> Path:
    return SESSIONS_DIR / f"{_SAFE_KEY.sub('_', key)}.json"


class JsonSessionStore:
    """Persistence port for ``SimulationSession``: one file per key."""

    def save(self, key: str, payload: str) -> None:
        _ensure_dirs()
        path = _session_path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with _LOCK:
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(path)

    def load(self, key: str) -> Optional[str]:
        path = _session_path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            log.warning("could not read snapshot %s", path)
            return None

    def delete(self, key: str) -> bool:
        path = _session_path(key)
        with _LOCK:
            if not path.exists():
                return False
            path.unlink()
        return True


def save_report(report_id: str, report: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist the report JSON and its index metadata."""

    _ensure_dirs()
    report_path = REPORTS_DIR / f"{report_id}.json"

    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(REPORT_INDEX_PATH, {})
        index[report_id] = metadata
        _write_json(REPORT_INDEX_PATH, index)

    _write_json(report_path, report)


def load_report(report_id: str) -> Optional[Dict[str, Any]]:
    path = REPORTS_DIR / f"{_SAFE_KEY.sub('_', report_id)}.json"
    return _read_json(path, None)


def find_report_by_session(session_id: str) -> Optional[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(REPORT_INDEX_PATH, {})
    for rid, meta in index.items():
        if meta.get("sessionId") == session_id:
            report = load_report(rid)
            if report:
                return report
    return None


def list_reports_for_case(case_id: str) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(REPORT_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for rid, meta in index.items():
        if meta.get("caseId") == case_id:
            item = {"id": rid}
            item.update({k: v for k, v in meta.items() if k != "id"})
            out.append(item)
    out.sort(key=lambda r: r.get("createdAt", ""), reverse=True)
    return out
