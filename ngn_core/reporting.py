# ngn_core/reporting.py
from __future__ import annotations
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List

from .readiness import calculate_bayesian_pass_probability, readiness_label
from .stress import parse_timestamp_ms
from .types import SessionState


# -------- utils: make any object JSON-safe ----------
def _to_basic(x: Any) -> Any:
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, dict):
        return {str(k): _to_basic(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set)):
        return [_to_basic(v) for v in x]
    if is_dataclass(x) and not isinstance(x, type):
        return _to_basic(asdict(x))
    return str(x)


def _duration_sec(start: str, end: str | None) -> float | None:
    a, b = parse_timestamp_ms(start), parse_timestamp_ms(end)
    if a is None or b is None:
        return None
    return round((b - a) / 1000.0, 1)


def build_session_report(state: SessionState) -> Dict[str, Any]:
    """Summary of one session: per-item breakdown, totals, CJMM profile, readiness."""

    cs = state.case_study
    rows: List[Dict[str, Any]] = []
    earned_seq: List[float] = []
    possible_seq: List[float] = []
    for idx, it in enumerate(cs.items):
        mp = getattr(it.scoring, "max_points", None)
        mp = 1 if mp is None else mp
        answered = it.id in state.scores
        earned = state.scores.get(it.id, 0)
        if answered:
            earned_seq.append(earned)
            possible_seq.append(mp)
        rows.append({
            "index": idx,
            "item_id": it.id,
            "type": it.type,
            "cjmm_step": it.pedagogy.cjmm_step if it.pedagogy is not None else None,
            "answered": answered,
            "earned": earned,
            "max": mp,
            "ratio": (earned / mp) if answered and mp > 0 else 0.0,
        })

    total_earned = sum(earned_seq)
    total_possible = sum(possible_seq)
    probability = calculate_bayesian_pass_probability(earned_seq, possible_seq)

    return _to_basic({
        "session_id": state.id,
        "case_study_id": cs.id,
        "case_title": cs.title,
        "status": state.status,
        "start_time": state.start_time,
        "end_time": state.end_time,
        "duration_sec": _duration_sec(state.start_time, state.end_time),
        "items": rows,
        "totals": {
            "answered": len(earned_seq),
            "item_count": len(cs.items),
            "earned": total_earned,
            "possible": total_possible,
            "ratio": (total_earned / total_possible) if total_possible > 0 else 0.0,
        },
        "cjmm_profile": dict(state.cjmm_profile),
        "pass_probability": probability,
        "readiness": readiness_label(probability),
        "stress_state": state.stress_state,
        "medications": list(state.administered_meds.values()),
    })
