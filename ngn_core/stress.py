"""Stress-state inference from a trailing window of audit events.

``detect_stress`` is pure: "now" is the timestamp of the newest entry, so the
same log snapshot always classifies the same way.  Callers that want
wall-clock idle detection pass ``now`` explicitly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from . import config
from .types import AuditEntry

__all__ = ["StressMetrics", "compute_metrics", "classify", "detect_stress", "parse_timestamp_ms"]

log = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 60_000


@dataclass
class StressMetrics:
    answer_changes: int = 0
    tab_switches: int = 0
    click_rate: float = 0.0
    time_since_last_action: float = 0.0
    unique_targets_5s: int = 0
    avg_gap: float = 0.0
    recent_count: int = 0


def parse_timestamp_ms(value) -> Optional[float]:
    """ISO-8601 string (or datetime) to epoch milliseconds; naive values are UTC."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0


def _timed(entries: Iterable[AuditEntry]) -> List[Tuple[float, AuditEntry]]:
    out: List[Tuple[float, AuditEntry]] = []
    for e in entries:
        ms = parse_timestamp_ms(getattr(e, "timestamp", None))
        if ms is None:
            log.debug("skipping audit entry with bad timestamp: %r", getattr(e, "timestamp", None))
            continue
        out.append((ms, e))
    out.sort(key=lambda pair: pair[0])
    return out


def compute_metrics(
    entries: Iterable[AuditEntry],
    window_ms: int = DEFAULT_WINDOW_MS,
    *,
    now: Optional[datetime] = None,
) -> Optional[StressMetrics]:
    """Metrics over the trailing window, or ``None`` when nothing falls inside it."""

    timed = _timed(entries)
    if not timed:
        return None
    now_ms = parse_timestamp_ms(now) if now is not None else timed[-1][0]
    if now_ms is None:
        now_ms = timed[-1][0]

    recent = [(t, e) for t, e in timed if now_ms - t < window_ms]
    if not recent:
        return None

    answer_changes = sum(1 for _, e in recent if e.action in ("answerSelect", "answerDeselect"))
    tab_switches = sum(1 for _, e in recent if e.action == "tabChange")
    click_rate = len(recent) / (window_ms / 1000.0) if window_ms > 0 else 0.0
    time_since_last = now_ms - recent[-1][0]

    burst_start = now_ms - config.STRESS_BURST_WINDOW_MS
    unique_targets = len({e.target for t, e in recent if t >= burst_start})

    gaps = [b[0] - a[0] for a, b in zip(recent, recent[1:])]
    avg_gap = sum(gaps) / len(gaps) if gaps else 0.0

    return StressMetrics(
        answer_changes=answer_changes,
        tab_switches=tab_switches,
        click_rate=click_rate,
        time_since_last_action=time_since_last,
        unique_targets_5s=unique_targets,
        avg_gap=avg_gap,
        recent_count=len(recent),
    )


def classify(m: StressMetrics) -> str:
    """Priority cascade; first match wins."""

    if m.time_since_last_action > config.PARALYSIS_IDLE_MS:
        return "paralysis"
    if (
        m.answer_changes > config.PANIC_ANSWER_CHANGES
        or m.click_rate > config.PANIC_CLICK_RATE
        or m.unique_targets_5s > config.PANIC_UNIQUE_TARGETS
    ):
        return "panic"
    if m.answer_changes >= config.HESITANT_ANSWER_CHANGES and (
        m.tab_switches > config.HESITANT_TAB_SWITCHES or m.avg_gap > config.HESITANT_AVG_GAP_MS
    ):
        return "hesitant"
    return "focused"


def detect_stress(
    entries: Iterable[AuditEntry],
    window_ms: int = DEFAULT_WINDOW_MS,
    *,
    now: Optional[datetime] = None,
) -> str:
    metrics = compute_metrics(entries, window_ms, now=now)
    if metrics is None:
        return "focused"
    state = classify(metrics)
    if config.DEBUG_TRACE:
        fields = " ".join(f"{k}={getattr(metrics, k)}" for k in config.TRACE_FIELDS)
        log.info("stress %s %s", state, fields)
    return state
