"""Session state machine.

``reduce(state, action)`` is the only way a :class:`SessionState` changes.
It never mutates its input: a transition returns a new state, a no-op
returns the same object.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
import uuid

from . import config
from .scoring import score_item
from .types import (
    CLINICAL_LIST_FIELDS,
    CaseStudy,
    ClinicalData,
    LabResult,
    MedicationAdministration,
    SessionState,
    VitalSign,
)

# ---- actions ----

@dataclass(frozen=True)
class SubmitAnswer:
    item_id: str
    answer: Any

@dataclass(frozen=True)
class NextItem:
    pass

@dataclass(frozen=True)
class Complete:
    pass

@dataclass(frozen=True)
class UpdateStress:
    stress_state: str

@dataclass(frozen=True)
class AdministerMed:
    med_id: str
    rights: List[str] = field(default_factory=list)
    nurse_name: str = ""

@dataclass(frozen=True)
class ResumeSession:
    session: SessionState

@dataclass(frozen=True)
class Tick:
    pass

SessionAction = Union[SubmitAnswer, NextItem, Complete, UpdateStress, AdministerMed, ResumeSession, Tick]


def utcnow_iso(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _empty_profile() -> Dict[str, float]:
    return {step: 0.0 for step in config.CJMM_STEPS}


def _copy_clinical(data: ClinicalData) -> ClinicalData:
    # shallow: new lists, shared records
    return ClinicalData(**{name: list(getattr(data, name)) for name in CLINICAL_LIST_FIELDS})


def create_initial_state(
    case_study: CaseStudy,
    *,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SessionState:
    return SessionState(
        id=session_id or str(uuid.uuid4()),
        case_study=case_study,
        start_time=utcnow_iso(now),
        current_item_index=0,
        answers={},
        scores={},
        status="active",
        stress_state="focused",
        cjmm_profile=_empty_profile(),
        administered_meds={},
        active_clinical_data=_copy_clinical(case_study.clinical_data),
    )


def merge_clinical_data(current: ClinicalData, updates: ClinicalData) -> ClinicalData:
    """Append every list field of ``updates`` onto ``current``; nothing is replaced."""

    return ClinicalData(**{
        name: list(getattr(current, name)) + list(getattr(updates, name) or [])
        for name in CLINICAL_LIST_FIELDS
    })


def _max_points(item) -> float:
    scoring = getattr(item, "scoring", None)
    mp = getattr(scoring, "max_points", None)
    return 1 if mp is None else mp


def _step_ratio(case_study: CaseStudy, step: str, scores: Dict[str, float]) -> float:
    answered = [it for it in case_study.items
                if it.pedagogy is not None and it.pedagogy.cjmm_step == step and it.id in scores]
    total_max = sum(_max_points(it) for it in answered)
    total_earned = sum(scores[it.id] for it in answered)
    return total_earned / total_max if total_max > 0 else 0.0


def _is_locked(state: SessionState) -> bool:
    return config.LOCK_AFTER_COMPLETE and state.status != "active"


def _submit(state: SessionState, action: SubmitAnswer) -> SessionState:
    item = state.case_study.find_item(action.item_id)
    if item is None:
        return state
    result = score_item(item, action.answer)

    answers = {**state.answers, action.item_id: action.answer}
    scores = {**state.scores, action.item_id: result.earned}
    profile = dict(state.cjmm_profile)
    step = item.pedagogy.cjmm_step if item.pedagogy is not None else None
    if step:
        profile[step] = _step_ratio(state.case_study, step, scores)
    return replace(state, answers=answers, scores=scores, cjmm_profile=profile)


def _next(state: SessionState) -> SessionState:
    last = max(0, len(state.case_study.items) - 1)
    next_idx = min(state.current_item_index + 1, last)
    if next_idx == state.current_item_index:
        return state
    active = state.active_clinical_data
    phase = state.case_study.ehr_phases.get(next_idx)
    if phase is not None:
        active = merge_clinical_data(active, phase)
    return replace(state, current_item_index=next_idx, active_clinical_data=active)


def reduce(state: SessionState, action: SessionAction, *, now: Optional[datetime] = None) -> SessionState:
    if isinstance(action, SubmitAnswer):
        return state if _is_locked(state) else _submit(state, action)

    if isinstance(action, NextItem):
        return state if _is_locked(state) else _next(state)

    if isinstance(action, Complete):
        if _is_locked(state):
            return state
        return replace(state, status="completed", end_time=utcnow_iso(now))

    if isinstance(action, UpdateStress):
        if action.stress_state == state.stress_state:
            return state
        return replace(state, stress_state=action.stress_state)

    if isinstance(action, AdministerMed):
        if _is_locked(state):
            return state
        record = MedicationAdministration(
            med_id=action.med_id,
            timestamp=utcnow_iso(now),
            item_index=state.current_item_index,
            rights_checked=list(action.rights),
            administered_by=action.nurse_name,
        )
        return replace(state, administered_meds={**state.administered_meds, action.med_id: record})

    if isinstance(action, ResumeSession):
        # keep the live template; a snapshot may carry a stale one
        return replace(action.session, case_study=state.case_study)

    return state


# ---- snapshots ----

def state_to_dict(state: SessionState) -> Dict[str, Any]:
    """JSON-friendly snapshot; the case study is referenced by id only."""

    out: Dict[str, Any] = {}
    for f in fields(state):
        if f.name == "case_study":
            continue
        value = getattr(state, f.name)
        if f.name == "active_clinical_data":
            value = asdict(value)
        elif f.name == "administered_meds":
            value = {k: asdict(v) for k, v in value.items()}
        elif isinstance(value, dict):
            value = dict(value)
        out[f.name] = value
    out["case_study_id"] = state.case_study.id
    return out


def clinical_data_from_dict(raw: Dict[str, Any]) -> ClinicalData:
    raw = raw or {}
    return ClinicalData(
        notes=list(raw.get("notes") or []),
        vitals=[v if isinstance(v, VitalSign) else VitalSign(**v) for v in raw.get("vitals") or []],
        labs=[l if isinstance(l, LabResult) else LabResult(**l) for l in raw.get("labs") or []],
        physical_exam=list(raw.get("physical_exam") or []),
        orders=list(raw.get("orders") or []),
        imaging=list(raw.get("imaging") or []),
        medications=list(raw.get("medications") or []),
        pearl_annotations=list(raw.get("pearl_annotations") or []),
    )


def state_from_dict(raw: Dict[str, Any], case_study: CaseStudy) -> SessionState:
    """Rebuild a state from ``state_to_dict`` output, attaching ``case_study``.

    Raises ``KeyError``/``TypeError``/``ValueError`` on a malformed snapshot;
    callers at the persistence boundary treat that as "no snapshot".
    """

    snapshot_case = raw.get("case_study_id")
    if snapshot_case is not None and snapshot_case != case_study.id:
        raise ValueError(f"snapshot belongs to case {snapshot_case!r}, not {case_study.id!r}")
    return SessionState(
        id=str(raw["id"]),
        case_study=case_study,
        start_time=str(raw["start_time"]),
        current_item_index=int(raw.get("current_item_index", 0)),
        answers=dict(raw.get("answers") or {}),
        scores=dict(raw.get("scores") or {}),
        end_time=raw.get("end_time"),
        status=str(raw.get("status", "active")),
        stress_state=str(raw.get("stress_state", "focused")),
        cjmm_profile={**_empty_profile(), **(raw.get("cjmm_profile") or {})},
        administered_meds={
            k: MedicationAdministration(**v) for k, v in (raw.get("administered_meds") or {}).items()
        },
        active_clinical_data=clinical_data_from_dict(raw.get("active_clinical_data") or {}),
    )
