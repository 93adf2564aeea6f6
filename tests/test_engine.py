from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone

import pytest

from ngn_core import config
from ngn_core.audit_log import AuditLog
from ngn_core.engine import MemoryStore, SimulationSession
from tests.conftest import build_case


class RecordingStore(MemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.saves = 0

    def save(self, key: str, payload: str) -> None:
        self.saves += 1
        super().save(key, payload)


@pytest.fixture
def sim(case_study):
    s = SimulationSession(case_study, store=RecordingStore(), poll_interval=0.05)
    yield s
    s.close()


def test_transitions_are_persisted_under_case_key(sim):
    sim.submit_answer("mc1", "a")
    payload = json.loads(sim.store.load("case-1"))
    assert payload["scores"] == {"mc1": 1}
    assert payload["case_study_id"] == "case-1"


def test_initial_state_is_saved_once(sim):
    payload = json.loads(sim.store.load("case-1"))
    assert payload["current_item_index"] == 0
    assert payload["status"] == "active"
    assert sim.store.saves == 1


def test_noop_transitions_are_not_persisted(sim):
    sim.submit_answer("unknown", "a")
    sim.refresh_stress()
    assert sim.store.saves == 1


def test_resume_round_trip(case_study):
    store = MemoryStore()
    first = SimulationSession(case_study, store=store)
    first.submit_answer("mc1", "a")
    first.next_item()
    first.administer_med("med-001", ["right patient"], "RN")

    second = SimulationSession(case_study, store=store)
    assert second.resume() is True
    assert second.state == first.state
    assert second.session_id == first.session_id


def test_corrupt_snapshot_starts_fresh(case_study, caplog):
    store = MemoryStore()
    store.save("case-1", "{not json")
    sim = SimulationSession(case_study, store=store)
    fresh = sim.state
    assert sim.resume() is False
    assert sim.state is fresh
    assert "unreadable snapshot" in caplog.text


def test_snapshot_missing_fields_starts_fresh(case_study):
    store = MemoryStore()
    store.save("case-1", json.dumps({"case_study_id": "case-1"}))
    assert SimulationSession(case_study, store=store).resume() is False


def test_completed_snapshot_is_not_resumed(case_study):
    store = MemoryStore()
    done = SimulationSession(case_study, store=store)
    done.complete_session()
    again = SimulationSession(case_study, store=store)
    assert again.resume() is False
    assert again.state.status == "active"


def test_read_side_views(sim):
    assert sim.progress == pytest.approx(100 / 7)
    assert sim.current_item.id == "mc1"
    assert sim.pass_probability == 0.5
    sim.submit_answer("mc1", "a")
    sim.submit_answer("sata1", ["a", "b"])
    assert sim.pass_probability > 0.5
    sim.next_item()
    assert any("Hypotension" in a or "MEWS" in a for a in sim.alerts)


def test_progress_with_no_items():
    empty = build_case()
    empty.items = []
    assert SimulationSession(empty).progress == 0.0


def test_record_event_and_refresh_stress(sim):
    for i in range(8):
        sim.record_event("answerSelect", f"opt{i % 2}", item_id="mc1")
    assert sim.refresh_stress() == "panic"
    assert sim.state.stress_state == "panic"
    with pytest.raises(ValueError):
        sim.record_event("teleport", "x")


def test_events_are_scoped_to_session(case_study):
    shared = AuditLog()
    a = SimulationSession(case_study, audit_log=shared)
    b = SimulationSession(case_study, audit_log=shared)
    for _ in range(8):
        a.record_event("answerSelect", "opt")
    assert a.refresh_stress() == "panic"
    assert b.refresh_stress() == "focused"


def test_poller_updates_stress_and_stops_on_complete(sim):
    for _ in range(8):
        sim.record_event("answerSelect", "opt")
    sim.start_stress_polling()
    assert sim.polling
    deadline = time.time() + 2.0
    while sim.state.stress_state != "panic" and time.time() < deadline:
        time.sleep(0.02)
    assert sim.state.stress_state == "panic"

    sim.complete_session()
    assert not sim.polling
    sim.start_stress_polling()
    assert not sim.polling


def test_wall_clock_mode_detects_idle(sim, monkeypatch):
    monkeypatch.setattr(config, "STRESS_WALL_CLOCK_NOW", True)
    idle_since = datetime.now(timezone.utc) - timedelta(seconds=40)
    sim.record_event("click", "btn", timestamp=idle_since.isoformat())
    assert sim.refresh_stress() == "paralysis"
    monkeypatch.setattr(config, "STRESS_WALL_CLOCK_NOW", False)
    assert sim.refresh_stress() == "focused"


def test_existing_snapshot_is_not_overwritten_on_construction(case_study):
    store = MemoryStore()
    first = SimulationSession(case_study, store=store)
    first.submit_answer("mc1", "a")
    SimulationSession(case_study, store=store)
    assert json.loads(store.load("case-1"))["scores"] == {"mc1": 1}


def test_rejected_snapshot_is_replaced_with_fresh_state(case_study):
    store = MemoryStore()
    store.save("case-1", "{not json")
    sim = SimulationSession(case_study, store=store)
    assert sim.resume() is False
    assert json.loads(store.load("case-1"))["id"] == sim.session_id


def test_closed_session_stops_writing(case_study):
    store = RecordingStore()
    old = SimulationSession(case_study, store=store, poll_interval=0.05)
    for _ in range(8):
        old.record_event("answerSelect", "opt")
    old.start_stress_polling()
    old.close()
    assert old.closed and not old.polling
    saves = store.saves
    assert old.submit_answer("mc1", "a").scores == {}
    old.refresh_stress()
    old.save()
    old.start_stress_polling()
    assert not old.polling
    assert store.saves == saves


def test_cjmm_profile_stays_in_unit_interval(sim):
    sim.submit_answer("bt1", {"condition": "HF", "actions": ["a1", "a1", "a2", "a2"],
                              "parameters": ["p1", "p1", "p2", "p2"]})
    sim.submit_answer("sata1", ["a", "a", "a", "a"])
    assert all(0.0 <= v <= 1.0 for v in sim.state.cjmm_profile.values())
    assert sim.state.cjmm_profile["prioritizeHypotheses"] == 1.0
