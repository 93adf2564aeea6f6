from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ngn_core import config
from ngn_core.session import (
    AdministerMed,
    Complete,
    NextItem,
    ResumeSession,
    SubmitAnswer,
    Tick,
    UpdateStress,
    create_initial_state,
    reduce,
    state_from_dict,
    state_to_dict,
)
from tests.conftest import build_case

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def state(case_study):
    return create_initial_state(case_study, session_id="s1", now=NOW)


def test_initial_state(state, case_study):
    assert state.status == "active"
    assert state.current_item_index == 0
    assert state.stress_state == "focused"
    assert set(state.cjmm_profile) == set(config.CJMM_STEPS)
    assert all(v == 0.0 for v in state.cjmm_profile.values())
    assert state.active_clinical_data == case_study.clinical_data
    assert state.active_clinical_data.vitals is not case_study.clinical_data.vitals


def test_submit_scores_and_updates_cjmm(state):
    new = reduce(state, SubmitAnswer("sata1", ["a", "b", "d"]))
    assert new is not state
    assert state.answers == {}
    assert new.scores["sata1"] == 1
    assert new.cjmm_profile["analyzeCues"] == pytest.approx(1 / 3)

    # second analyzeCues item pools into the same step ratio
    new = reduce(new, SubmitAnswer("cz1", {"b1": "x", "b2": "y"}))
    assert new.cjmm_profile["analyzeCues"] == pytest.approx((1 + 2) / (3 + 2))


def test_resubmit_overwrites(state):
    s1 = reduce(state, SubmitAnswer("mc1", "b"))
    s2 = reduce(s1, SubmitAnswer("mc1", "a"))
    assert s2.scores["mc1"] == 1
    assert s2.cjmm_profile["recognizeCues"] == 1.0


def test_unknown_item_is_noop(state):
    assert reduce(state, SubmitAnswer("nope", "a")) is state


def test_next_item_merges_phase(state, case_study):
    s1 = reduce(state, NextItem())
    assert s1.current_item_index == 1
    assert len(s1.active_clinical_data.vitals) == 2
    assert s1.active_clinical_data.vitals[-1].hr == 118
    s2 = reduce(s1, NextItem())
    assert len(s2.active_clinical_data.vitals) == 2
    s3 = reduce(s2, NextItem())
    assert s3.active_clinical_data.labs[-1].value == 2.1
    assert len(s3.active_clinical_data.notes) == 2
    assert len(case_study.clinical_data.vitals) == 1


def test_next_item_stops_at_last(state):
    s = state
    for _ in range(20):
        s = reduce(s, NextItem())
    assert s.current_item_index == len(state.case_study.items) - 1
    assert reduce(s, NextItem()) is s
    assert len(s.active_clinical_data.labs) == 2


def test_complete_sets_end_time(state):
    done = reduce(state, Complete(), now=NOW)
    assert done.status == "completed"
    assert done.end_time == NOW.isoformat()


def test_completed_session_is_locked(state):
    done = reduce(state, Complete(), now=NOW)
    assert reduce(done, SubmitAnswer("mc1", "a")) is done
    assert reduce(done, NextItem()) is done
    assert reduce(done, AdministerMed("med-001")) is done
    assert reduce(done, Complete()) is done


def test_lock_can_be_disabled(state, monkeypatch):
    monkeypatch.setattr(config, "LOCK_AFTER_COMPLETE", False)
    done = reduce(state, Complete(), now=NOW)
    assert reduce(done, SubmitAnswer("mc1", "a")).scores["mc1"] == 1


def test_stress_update_and_noops(state):
    assert reduce(state, UpdateStress("focused")) is state
    assert reduce(state, UpdateStress("panic")).stress_state == "panic"
    assert reduce(state, Tick()) is state


def test_administer_med_records_index(state):
    s = reduce(reduce(state, NextItem()), AdministerMed("med-001", ["right patient", "right dose"], "RN Kim"), now=NOW)
    rec = s.administered_meds["med-001"]
    assert rec.item_index == 1
    assert rec.rights_checked == ["right patient", "right dose"]
    assert rec.administered_by == "RN Kim"
    assert rec.timestamp == NOW.isoformat()


def test_snapshot_round_trip(state):
    s = reduce(state, SubmitAnswer("bt1", {"condition": "HF", "actions": ["a1"], "parameters": []}))
    s = reduce(reduce(s, NextItem()), AdministerMed("med-002", ["right route"], "RN"), now=NOW)
    raw = state_to_dict(s)
    assert "case_study" not in raw
    assert raw["case_study_id"] == "case-1"
    assert state_from_dict(raw, s.case_study) == s


def test_snapshot_for_other_case_is_rejected(state):
    raw = state_to_dict(state)
    with pytest.raises(ValueError):
        state_from_dict(raw, build_case(case_id="case-2"))


def test_resume_keeps_live_template(state):
    saved = reduce(reduce(state, SubmitAnswer("mc1", "a")), NextItem())
    fresh = create_initial_state(state.case_study, session_id="other")
    resumed = reduce(fresh, ResumeSession(saved))
    assert resumed.id == "s1"
    assert resumed.current_item_index == 1
    assert resumed.case_study is fresh.case_study
