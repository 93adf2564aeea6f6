from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ngn_core.types import (
    AuditEntry,
    BowtieItem,
    CaseStudy,
    ClinicalData,
    ClozeDropdownItem,
    LabResult,
    MatrixMatchItem,
    MultipleChoiceItem,
    OrderedResponseItem,
    Patient,
    Pedagogy,
    ScoringRule,
    SelectAllItem,
    SelectNItem,
    VitalSign,
)

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
NOW_FINISH = T0 + timedelta(minutes=10)


def make_vital(**overrides) -> VitalSign:
    base = dict(time="08:00", hr=80, sbp=120, dbp=80, rr=16, temp=98.6, spo2=98, pain=0, consciousness="Alert")
    base.update(overrides)
    return VitalSign(**base)


def make_lab(name: str = "Potassium", value: float = 4.0, ref_low: float = 3.5, ref_high: float = 5.0) -> LabResult:
    return LabResult(name=name, value=value, unit="mEq/L", ref_low=ref_low, ref_high=ref_high)


def build_items() -> list:
    """One item per CJMM step, mixing dichotomous and polytomous kinds."""

    return [
        MultipleChoiceItem(
            id="mc1", stem="Pick a", pedagogy=Pedagogy(cjmm_step="recognizeCues"),
            options=[{"id": "a"}, {"id": "b"}], correct_option_id="a",
        ),
        SelectAllItem(
            id="sata1", stem="Pick all", pedagogy=Pedagogy(cjmm_step="analyzeCues"),
            scoring=ScoringRule(method="polytomous", max_points=3),
            options=[{"id": x} for x in "abcde"], correct_option_ids=["a", "b", "c"],
        ),
        BowtieItem(
            id="bt1", stem="Bowtie", pedagogy=Pedagogy(cjmm_step="prioritizeHypotheses"),
            scoring=ScoringRule(method="polytomous", max_points=5),
            potential_conditions=["HF", "PNA"], condition="HF",
            actions=[{"id": a} for a in ("a1", "a2", "a3")],
            parameters=[{"id": p} for p in ("p1", "p2", "p3")],
            correct_action_ids=["a1", "a2"], correct_parameter_ids=["p1", "p2"],
        ),
        SelectNItem(
            id="sn1", stem="Pick 2", pedagogy=Pedagogy(cjmm_step="generateSolutions"),
            scoring=ScoringRule(method="polytomous", max_points=2), n=2,
            options=[{"id": x} for x in "abcd"], correct_option_ids=["a", "c"],
        ),
        OrderedResponseItem(
            id="or1", stem="Order", pedagogy=Pedagogy(cjmm_step="takeAction"),
            options=[{"id": x} for x in "abc"], correct_order=["a", "b", "c"],
        ),
        MatrixMatchItem(
            id="mm1", stem="Match", pedagogy=Pedagogy(cjmm_step="evaluateOutcomes"),
            scoring=ScoringRule(method="polytomous", max_points=2),
            rows=[{"id": "r1"}, {"id": "r2"}], columns=[{"id": "x"}, {"id": "y"}],
            correct_matches={"r1": "x", "r2": "y"},
        ),
        ClozeDropdownItem(
            id="cz1", stem="Fill", pedagogy=Pedagogy(cjmm_step="analyzeCues"),
            scoring=ScoringRule(method="polytomous", max_points=2), template="{{b1}} {{b2}}",
            blanks=[{"id": "b1", "options": ["x", "y"], "correct_option": "x"},
                    {"id": "b2", "options": ["x", "y"], "correct_option": "y"}],
        ),
    ]


def build_case(*, with_phases: bool = True, case_id: str = "case-1") -> CaseStudy:
    items = build_items()
    phases = {}
    if with_phases:
        phases = {
            1: ClinicalData(vitals=[make_vital(time="09:00", hr=118, sbp=88, dbp=50)]),
            3: ClinicalData(labs=[make_lab(value=2.1)], notes=[{"id": "n2", "content": "K+ critical"}]),
        }
    return CaseStudy(
        id=case_id,
        title="Synthetic case",
        patient=Patient(id="p1", name="Test Patient", age=70),
        clinical_data=ClinicalData(vitals=[make_vital()], labs=[make_lab()], notes=[{"id": "n1", "content": "baseline"}]),
        items=items,
        ehr_phases=phases,
    )


def entry(action: str, offset_ms: float, target: str = "btn", session_id: str = "s1") -> AuditEntry:
    ts = (T0 + timedelta(milliseconds=offset_ms)).isoformat()
    return AuditEntry(timestamp=ts, action=action, target=target, session_id=session_id)


@pytest.fixture
def case_study() -> CaseStudy:
    return build_case()
