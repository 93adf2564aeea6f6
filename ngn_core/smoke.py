from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .config import DEBUG_TRACE, TRACE_FIELDS
from .case_bank import load_case_studies
from .engine import SimulationSession
from .reporting import build_session_report
from .types import ItemBase


def _maybe_enable_trace() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    if DEBUG_TRACE:
        logging.getLogger("ngn_core.stress").setLevel(logging.INFO)


def _auto_answer(item: ItemBase) -> Any:
    """Answer key for the item, in the shape the scoring engine accepts."""
    t = item.type
    if hasattr(item, "correct_option_id"):
        return item.correct_option_id
    if t in ("selectAll", "selectN"):
        return list(item.correct_option_ids)
    if t == "hotspot":
        return list(item.correct_hotspot_ids)
    if t == "highlight":
        return list(item.correct_span_indices)
    if t == "orderedResponse":
        return list(item.correct_order)
    if t == "matrixMatch":
        return dict(item.correct_matches)
    if t in ("clozeDropdown", "dragAndDropCloze"):
        return {b["id"]: b.get("correct_option") for b in item.blanks}
    if t == "bowtie":
        return {
            "condition": item.condition,
            "actions": list(item.correct_action_ids),
            "parameters": list(item.correct_parameter_ids),
        }
    return None


def run_smoke_session(path: Optional[str] = None) -> Dict[str, Any]:
    _maybe_enable_trace()

    cases = load_case_studies(path)
    if not cases:
        logging.warning("No case studies found")
        return {}
    cs = cases[0]
    sim = SimulationSession(cs)
    logging.info("Starting synthetic run of %s (%d items)", cs.id, len(cs.items))
    logging.info("Trace fields: %s", ", ".join(TRACE_FIELDS))

    t0 = datetime.now(timezone.utc)
    for step, item in enumerate(cs.items):
        answer = _auto_answer(item)
        ts = (t0 + timedelta(seconds=step * 12)).isoformat()
        sim.record_event("answerSelect", f"{item.id}:answer", item_id=item.id, timestamp=ts)
        sim.submit_answer(item.id, answer)
        sim.record_event("submit", "submit", item_id=item.id, timestamp=ts)
        logging.info("  %-12s %-18s score=%s stress=%s", item.id, item.type,
                     sim.state.scores.get(item.id), sim.refresh_stress())
        sim.next_item()

    for alert in sim.alerts:
        logging.info("ALERT %s", alert)

    sim.complete_session()
    report = build_session_report(sim.state)
    logging.info(
        "Run complete: earned=%s/%s pass_probability=%.3f readiness=%s",
        report["totals"]["earned"],
        report["totals"]["possible"],
        report["pass_probability"],
        report["readiness"],
    )
    for step, ratio in report["cjmm_profile"].items():
        logging.info("  CJMM %-22s %.2f", step, ratio)
    sim.close()
    return report


if __name__ == "__main__":  # pragma: no cover
    run_smoke_session()
