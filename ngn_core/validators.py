from __future__ import annotations
from typing import Any, Dict, List
from .types import DICHOTOMOUS_TYPES, ITEM_CLASSES, CaseStudy, ItemBase


def _ids(entries: Any) -> List[Any]:
    return [e.get("id") for e in entries or [] if isinstance(e, dict)]


def _missing(keys: List[Any], known: List[Any], label: str, item_id: str) -> List[str]:
    return [f"{item_id}: {label} {k!r} not among options" for k in keys if k not in known]


def validate_item(item: ItemBase) -> List[str]:
    """Problems with an item's answer key; an empty list means it is usable."""
    out: List[str] = []
    iid = item.id or "<no id>"
    t = item.type
    if t not in ITEM_CLASSES:
        return [f"{iid}: unknown item type {t!r}"]
    if not (item.stem or "").strip():
        out.append(f"{iid}: empty stem")
    mp = item.scoring.max_points if item.scoring is not None else None
    if mp is not None and mp < 0:
        out.append(f"{iid}: negative max_points")

    if t in DICHOTOMOUS_TYPES:
        if not item.correct_option_id:
            out.append(f"{iid}: missing correct_option_id")
        else:
            out += _missing([item.correct_option_id], _ids(item.options), "correct option", iid)
    elif t in ("selectAll", "selectN"):
        if not item.correct_option_ids:
            out.append(f"{iid}: missing correct_option_ids")
        out += _missing(item.correct_option_ids, _ids(item.options), "correct option", iid)
        if t == "selectN" and not (0 < item.n <= len(item.options)):
            out.append(f"{iid}: n={item.n} outside 1..{len(item.options)}")
    elif t == "orderedResponse":
        if sorted(map(str, item.correct_order)) != sorted(map(str, _ids(item.options))):
            out.append(f"{iid}: correct_order is not a permutation of the options")
    elif t == "matrixMatch":
        rows, cols = _ids(item.rows), _ids(item.columns)
        if not item.correct_matches:
            out.append(f"{iid}: missing correct_matches")
        for row, col in (item.correct_matches or {}).items():
            if row not in rows: out.append(f"{iid}: matched row {row!r} not among rows")
            if col not in cols: out.append(f"{iid}: matched column {col!r} not among columns")
    elif t in ("clozeDropdown", "dragAndDropCloze"):
        if not item.blanks:
            out.append(f"{iid}: no blanks")
        for b in item.blanks:
            if not isinstance(b, dict) or not b.get("id"):
                out.append(f"{iid}: blank without id"); continue
            choices = b.get("options") if t == "clozeDropdown" else item.options
            if b.get("correct_option") not in (choices or []):
                out.append(f"{iid}: blank {b['id']} correct option not among its choices")
            if "{{" in item.template and "{{%s}}" % b["id"] not in item.template:
                out.append(f"{iid}: blank {b['id']} not referenced by template")
    elif t == "bowtie":
        if not item.condition:
            out.append(f"{iid}: missing condition")
        elif item.potential_conditions and item.condition not in item.potential_conditions:
            out.append(f"{iid}: condition not among potential_conditions")
        if len(item.correct_action_ids) != 2: out.append(f"{iid}: expected 2 correct actions")
        if len(item.correct_parameter_ids) != 2: out.append(f"{iid}: expected 2 correct parameters")
        out += _missing(item.correct_action_ids, _ids(item.actions), "action", iid)
        out += _missing(item.correct_parameter_ids, _ids(item.parameters), "parameter", iid)
    elif t == "hotspot":
        if not item.correct_hotspot_ids:
            out.append(f"{iid}: missing correct_hotspot_ids")
        out += _missing(item.correct_hotspot_ids, _ids(item.hotspots), "hotspot", iid)
    elif t == "highlight":
        if not item.correct_span_indices:
            out.append(f"{iid}: missing correct_span_indices")
        spans = item.passage.count("[")
        bad = [i for i in item.correct_span_indices if not isinstance(i, int) or not 0 <= i < max(spans, 1)]
        if spans and bad:
            out.append(f"{iid}: span indices {bad} outside passage ({spans} spans)")
    return out


def validate_case_study(cs: CaseStudy) -> List[str]:
    out: List[str] = []
    seen: Dict[str, int] = {}
    for it in cs.items:
        seen[it.id] = seen.get(it.id, 0) + 1
        out += validate_item(it)
    out += [f"{cs.id}: duplicate item id {k!r}" for k, n in seen.items() if n > 1]

    for idx in cs.ehr_phases:
        if not 0 <= idx < len(cs.items):
            out.append(f"{cs.id}: EHR phase at index {idx} is beyond the last item")

    datasets = [cs.clinical_data] + list(cs.ehr_phases.values())
    for data in datasets:
        for v in data.vitals:
            if v.dbp >= v.sbp:
                out.append(f"{cs.id}: vitals at {v.time} have dbp >= sbp")
        for lab in data.labs:
            if lab.ref_low >= lab.ref_high:
                out.append(f"{cs.id}: lab {lab.name} has ref_low >= ref_high")
    return out
