from __future__ import annotations
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uuid, logging, typing as t

from ngn_core import config
from ngn_core.audit_export import to_json as audit_to_json, to_csv as audit_to_csv
from ngn_core.audit_log import AuditLog
from ngn_core.case_bank import get_case_study, load_case_studies, public_item_view
from ngn_core.clinical import get_vital_color
from ngn_core.engine import SimulationSession
from ngn_core.reporting import build_session_report
from ngn_core.session import state_to_dict
from .storage import (
    JsonSessionStore,
    find_report_by_session,
    list_reports_for_case,
    load_report,
    save_report,
    utcnow_iso,
)

log = logging.getLogger(__name__)

AUDIT = AuditLog()
STORE = JsonSessionStore()
SESS: dict[str, SimulationSession] = {}
SESSION_INFO: dict[str, dict[str, t.Any]] = {}

app = FastAPI(title="NGN Case Simulator API")


@app.get("/")
def root():
    return {"status": "ok", "service": "ngn-case-simulator"}


ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class StartReq(BaseModel):
    case_id: str
    resume: bool = True

class AnswerReq(BaseModel):
    item_id: str
    answer: t.Any = None

class MedReq(BaseModel):
    med_id: str
    rights: list[str] = []
    nurse_name: str = ""

class EventReq(BaseModel):
    action: str
    target: str
    item_id: str | None = None
    metadata: dict[str, t.Any] | None = None
    timestamp: str | None = None

# ---- Helpers ----
def _get(sid: str) -> SimulationSession:
    sim = SESS.get(sid)
    if not sim:
        raise HTTPException(404, "session not found")
    return sim


def _view(sim: SimulationSession) -> dict[str, t.Any]:
    st = sim.state
    snap = state_to_dict(st)
    vitals = st.active_clinical_data.vitals
    return {
        "session_id": st.id,
        "case_id": st.case_study.id,
        "status": st.status,
        "current_item_index": st.current_item_index,
        "item_count": len(st.case_study.items),
        "item": public_item_view(sim.current_item),
        "progress": sim.progress,
        "answers": snap["answers"],
        "scores": snap["scores"],
        "cjmm_profile": snap["cjmm_profile"],
        "stress_state": st.stress_state,
        "pass_probability": sim.pass_probability,
        "alerts": sim.alerts,
        "vital_colors": get_vital_color(vitals[-1]) if vitals else {},
        "clinical_data": snap["active_clinical_data"],
        "administered_meds": snap["administered_meds"],
        "start_time": st.start_time,
        "end_time": st.end_time,
    }


def _case_summary(cs) -> dict[str, t.Any]:
    return {
        "id": cs.id,
        "title": cs.title,
        "item_count": len(cs.items),
        "time_limit": cs.time_limit,
        "diagnosis": cs.patient.diagnosis if cs.patient is not None else None,
    }

# ---- Health ----
@app.get("/health")
def health():
    return {
        "cases_loaded": len(load_case_studies()),
        "active_sessions": sum(1 for s in SESS.values() if s.state.status == "active"),
        "stress_polling": config.STRESS_POLLING_ENABLED,
        "audit_export": config.AUDIT_EXPORT_ENABLED,
    }

# ---- Case bank ----
@app.get("/cases")
def list_cases():
    return {"cases": [_case_summary(cs) for cs in load_case_studies()]}


@app.get("/cases/{case_id}/reports")
def case_reports(case_id: str):
    if get_case_study(case_id) is None:
        raise HTTPException(404, "case not found")
    return {"reports": list_reports_for_case(case_id)}

# ---- Session ----
@app.post("/session/start")
def start(req: StartReq):
    cs = get_case_study(req.case_id)
    if cs is None:
        raise HTTPException(404, "case not found")
    live = [s for s in SESS.values() if s.case_study.id == cs.id and not s.closed]
    keep = next((s for s in live if s.state.status == "active"), None) if req.resume else None
    # one writer per snapshot key
    for stale in live:
        if stale is not keep:
            stale.close()
    if keep is not None:
        sim, resumed = keep, True
    else:
        sim = SimulationSession(cs, audit_log=AUDIT, store=STORE)
        resumed = sim.resume() if req.resume else False
        if not req.resume:
            sim.save()
    sid = sim.session_id
    SESS[sid] = sim
    info = SESSION_INFO.setdefault(sid, {"case_id": cs.id, "started_at": utcnow_iso()})
    info["resumed"] = resumed
    if config.STRESS_POLLING_ENABLED:
        sim.start_stress_polling()
    log.info("session %s started on %s (resumed=%s)", sid, cs.id, resumed)
    return {"session_id": sid, "resumed": resumed, "state": _view(sim)}


@app.get("/session/{sid}")
def get_session(sid: str):
    return _view(_get(sid))


@app.post("/session/{sid}/answer")
def answer(sid: str, req: AnswerReq):
    sim = _get(sid)
    if sim.case_study.find_item(req.item_id) is None:
        raise HTTPException(404, "item not found")
    sim.submit_answer(req.item_id, req.answer)
    st = sim.state
    return {"item_id": req.item_id, "score": st.scores.get(req.item_id), "cjmm_profile": st.cjmm_profile,
            "pass_probability": sim.pass_probability}


@app.post("/session/{sid}/next")
def next_item(sid: str):
    sim = _get(sid)
    sim.next_item()
    return _view(sim)


@app.post("/session/{sid}/meds")
def administer(sid: str, req: MedReq):
    sim = _get(sid)
    sim.administer_med(req.med_id, req.rights, req.nurse_name)
    rec = sim.state.administered_meds.get(req.med_id)
    return {"ok": rec is not None, "administered_meds": state_to_dict(sim.state)["administered_meds"]}


@app.post("/session/{sid}/events")
def record_event(sid: str, req: EventReq):
    sim = _get(sid)
    try:
        entry = sim.record_event(req.action, req.target, item_id=req.item_id,
                                 metadata=req.metadata, timestamp=req.timestamp)
    except ValueError as exc:
        raise HTTPException(422, str(exc))
    return {"ok": True, "timestamp": entry.timestamp}


@app.post("/session/{sid}/stress")
def refresh_stress(sid: str):
    sim = _get(sid)
    return {"stress_state": sim.refresh_stress()}


@app.post("/session/{sid}/complete")
def complete(sid: str):
    stored = find_report_by_session(sid)
    if stored:
        return stored
    sim = _get(sid)
    sim.complete_session()
    report = build_session_report(sim.state)
    rid = str(uuid.uuid4())
    created = utcnow_iso()
    report.update({"id": rid, "created_at": created})
    if config.AUDIT_EXPORT_ENABLED:
        report["audit_events"] = audit_to_json(AUDIT.get_entries_for_session(sid))["events"]
    save_report(rid, report, {
        "sessionId": sid,
        "caseId": sim.case_study.id,
        "startedAt": SESSION_INFO.get(sid, {}).get("started_at"),
        "createdAt": created,
        "readiness": report.get("readiness"),
    })
    sim.close()
    return report


@app.get("/session/{sid}/audit.json")
def get_audit_json(sid: str):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    _get(sid)
    return {"session_id": sid, **audit_to_json(AUDIT.get_entries_for_session(sid))}


@app.get("/session/{sid}/audit.csv")
def get_audit_csv(sid: str):
    if not config.AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    _get(sid)
    body = audit_to_csv(AUDIT.get_entries_for_session(sid))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{sid}_audit.csv\""},
    )


@app.get("/reports/{report_id}")
def get_report(report_id: str):
    report = load_report(report_id)
    if not report:
        raise HTTPException(404, "report not found")
    return report
