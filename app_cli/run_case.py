from __future__ import annotations
import os, sys, json, datetime
from ngn_core.case_bank import load_case_studies, public_item_view
from ngn_core.clinical import check_high_alert
from ngn_core.engine import SimulationSession
from ngn_core.reporting import build_session_report
def ask(prompt: str, options=None) -> str:
    if options:
        print(prompt)
        for i,opt in enumerate(options): print(f"  [{i}] {opt}")
        while True:
            v = input("Your choice (index): ").strip()
            if v.isdigit() and int(v) < len(options): return v
            print("Enter a number index.")
    else:
        return input(prompt + " ").strip()
def _ids(raw: str, options):
    picks = [p for p in raw.replace(",", " ").split() if p.isdigit() and int(p) < len(options)]
    return [options[int(p)]["id"] for p in picks]
def read_answer(view):
    t = view["type"]; opts = view.get("options") or []
    print(f"\n[{t}] {view.get('stem','')}")
    if t in ("multipleChoice","priorityAction","trend","graphic","audioVideo","chartExhibit"):
        return opts[int(ask("", [o.get("text") for o in opts]))]["id"]
    if t in ("selectAll","selectN"):
        for i,o in enumerate(opts): print(f"  [{i}] {o.get('text')}")
        return _ids(ask("Indices (space separated):"), opts)
    if t == "orderedResponse":
        for i,o in enumerate(opts): print(f"  [{i}] {o.get('text')}")
        return _ids(ask("Order (indices, first to last):"), opts)
    if t == "hotspot":
        spots = view.get("hotspots") or []
        return [spots[int(ask("", [h.get("label") for h in spots]))]["id"]]
    if t == "highlight":
        print(view.get("passage",""))
        return [int(p) for p in ask("Span indices (0-based):").split() if p.isdigit()]
    if t == "matrixMatch":
        cols = view.get("columns") or []
        return {r["id"]: cols[int(ask(r.get("text",""), [c.get("text") for c in cols]))]["id"] for r in view.get("rows") or []}
    if t in ("clozeDropdown","dragAndDropCloze"):
        print(view.get("template",""))
        out = {}
        for b in view.get("blanks") or []:
            choices = b.get("options") or view.get("options") or []
            out[b["id"]] = choices[int(ask(f"{{{{{b['id']}}}}}", choices))]
        return out
    if t == "bowtie":
        conds = view.get("potential_conditions") or []
        acts = view.get("actions") or []; params = view.get("parameters") or []
        cond = conds[int(ask("Condition:", conds))] if conds else ""
        for i,o in enumerate(acts): print(f"  [{i}] {o.get('text')}")
        a = _ids(ask("Two actions:"), acts)
        for i,o in enumerate(params): print(f"  [{i}] {o.get('text')}")
        p = _ids(ask("Two parameters:"), params)
        return {"condition": cond, "actions": a, "parameters": p}
    return ask("Answer:")
def main():
    cases = load_case_studies(sys.argv[1] if len(sys.argv) > 1 else None)
    cs = cases[int(ask("Pick a case study", [c.title for c in cases]))]
    print(f"NGN Case Simulator: {cs.title}")
    sim = SimulationSession(cs)
    while True:
        for alert in check_high_alert(sim.state.active_clinical_data): print(f"  ! {alert}")
        view = public_item_view(sim.current_item)
        if view is None: break
        sim.submit_answer(view["id"], read_answer(view))
        print(f"  score={sim.state.scores.get(view['id'])}  pass_probability={sim.pass_probability:.2f}")
        if sim.state.current_item_index >= len(cs.items) - 1: break
        sim.next_item()
    sim.complete_session(); report = build_session_report(sim.state); os.makedirs("reports", exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    path = os.path.join("reports", f"report_{cs.id}_{ts}.json")
    with open(path, "w", encoding="utf-8") as f: json.dump(report, f, indent=2)
    print(f"Done. Readiness: {report['readiness']}. Report saved to: {path}")
if __name__ == "__main__": main()
