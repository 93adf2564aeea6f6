# ngn_core/engine.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json, logging, threading

from . import config
from .audit_log import AuditLog
from .clinical import check_high_alert
from .readiness import calculate_bayesian_pass_probability
from .session import (
    AdministerMed,
    Complete,
    NextItem,
    ResumeSession,
    SessionAction,
    SubmitAnswer,
    UpdateStress,
    create_initial_state,
    reduce,
    state_from_dict,
    state_to_dict,
)
from .stress import detect_stress
from .types import AuditEntry, CaseStudy, ItemBase, SessionState

log = logging.getLogger(__name__)


class MemoryStore:
    """Persistence port kept in process memory."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, payload: str) -> None:
        with self._lock:
            self._data[key] = payload

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)


class SimulationSession:
    """One learner working through one case study.

    All transitions go through :meth:`dispatch`, which applies the pure
    reducer under a re-entrant lock and writes the snapshot before releasing
    it.  The stress poller is another caller of :meth:`dispatch`, never a
    second writer.
    """

    def __init__(
        self,
        case_study: CaseStudy,
        *,
        audit_log: Optional[AuditLog] = None,
        store: Any = None,
        poll_interval: Optional[float] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.case_study = case_study
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.store = store if store is not None else MemoryStore()
        self.poll_interval = config.STRESS_POLL_INTERVAL_SEC if poll_interval is None else poll_interval
        self._lock = threading.RLock()
        self._state = create_initial_state(case_study, session_id=session_id)
        self._stop = threading.Event()
        self._poller: Optional[threading.Thread] = None
        self._closed = False
        if not self.store.load(self.storage_key):
            self._persist(self._state)

    # ---- state ----

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def session_id(self) -> str:
        return self.state.id

    @property
    def storage_key(self) -> str:
        return self.case_study.id

    def dispatch(self, action: SessionAction) -> SessionState:
        with self._lock:
            old = self._state
            if self._closed:
                log.debug("session %s is closed; dropping %s", old.id, type(action).__name__)
                return old
            new = reduce(old, action)
            if new is not old:
                self._state = new
                self._persist(new)
            leaving = new.status != "active"
        if leaving:
            self.stop_stress_polling()
        return new

    def save(self) -> None:
        """Write the current state over whatever snapshot the store holds."""

        with self._lock:
            if not self._closed:
                self._persist(self._state)

    def _persist(self, state: SessionState) -> None:
        try:
            self.store.save(self.storage_key, json.dumps(state_to_dict(state)))
        except (OSError, TypeError, ValueError) as exc:
            log.warning("could not persist session %s: %s", state.id, exc)

    def resume(self) -> bool:
        """Adopt the stored snapshot for this case if one is active; True on success."""

        payload = self.store.load(self.storage_key)
        if not payload:
            return False
        try:
            restored = state_from_dict(json.loads(payload), self.case_study)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("ignoring unreadable snapshot for case %s: %s", self.storage_key, exc)
            self.save()
            return False
        if restored.status != "active":
            log.info("snapshot for case %s is %s; starting fresh", self.storage_key, restored.status)
            self.save()
            return False
        self.dispatch(ResumeSession(restored))
        return True

    # ---- UI verbs ----

    def submit_answer(self, item_id: str, answer: Any) -> SessionState:
        return self.dispatch(SubmitAnswer(item_id=item_id, answer=answer))

    def next_item(self) -> SessionState:
        return self.dispatch(NextItem())

    def complete_session(self) -> SessionState:
        return self.dispatch(Complete())

    def administer_med(self, med_id: str, rights: Optional[List[str]] = None, nurse_name: str = "") -> SessionState:
        return self.dispatch(AdministerMed(med_id=med_id, rights=list(rights or []), nurse_name=nurse_name))

    def record_event(
        self,
        action: str,
        target: str,
        item_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> AuditEntry:
        return self.audit_log.record(action, target, self.session_id, item_id=item_id,
                                     metadata=metadata, timestamp=timestamp)

    def refresh_stress(self) -> str:
        now = datetime.now(timezone.utc) if config.STRESS_WALL_CLOCK_NOW else None
        entries = self.audit_log.get_entries_for_session(self.session_id)
        stress = detect_stress(entries, config.STRESS_WINDOW_MS, now=now)
        self.dispatch(UpdateStress(stress))
        return stress

    # ---- polling ----

    def start_stress_polling(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._poller is not None and self._poller.is_alive():
                return
            if self._state.status != "active":
                return
            self._stop.clear()
            self._poller = threading.Thread(target=self._poll_loop, name=f"stress-{self.session_id[:8]}", daemon=True)
            self._poller.start()

    def stop_stress_polling(self) -> None:
        self._stop.set()
        poller = self._poller
        if poller is not None and poller is not threading.current_thread():
            poller.join(timeout=max(self.poll_interval, 0.1) * 2)

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.is_alive() and not self._stop.is_set()

    def _poll_loop(self) -> None:
        while not self._stop.wait(self.poll_interval):
            if self.state.status != "active":
                break
            try:
                self.refresh_stress()
            except ValueError as exc:
                log.warning("stress refresh failed for %s: %s", self.session_id, exc)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop polling and drop every later transition; the store keeps the last snapshot."""

        with self._lock:
            self._closed = True
        self.stop_stress_polling()

    # ---- read side ----

    @property
    def current_item(self) -> Optional[ItemBase]:
        st = self.state
        items = self.case_study.items
        return items[st.current_item_index] if 0 <= st.current_item_index < len(items) else None

    @property
    def progress(self) -> float:
        count = len(self.case_study.items)
        if count == 0:
            return 0.0
        return (self.state.current_item_index + 1) / count * 100

    @property
    def pass_probability(self) -> float:
        st = self.state
        earned, possible = [], []
        for it in self.case_study.items:
            if it.id not in st.scores:
                continue
            earned.append(st.scores[it.id])
            mp = getattr(it.scoring, "max_points", None)
            possible.append(1 if mp is None else mp)
        return calculate_bayesian_pass_probability(earned, possible)

    @property
    def alerts(self) -> List[str]:
        return check_high_alert(self.state.active_clinical_data)
