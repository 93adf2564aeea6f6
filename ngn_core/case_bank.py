"""Case-study loading and one-time normalisation of authored JSON.

Authoring files use camelCase and carry a few historical shapes (bowtie keys
under ``correctAnswers`` or ``bowtieData``, items without a ``scoring``
block).  Everything is folded into the canonical dataclasses here, once, so
the scoring engine and reducer never branch on schema variants.
"""
from __future__ import annotations
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional
import copy, json, logging, re

from .config import load_config
from .session import clinical_data_from_dict
from .types import (
    ANSWER_KEY_FIELDS,
    DICHOTOMOUS_TYPES,
    ITEM_CLASSES,
    CaseStudy,
    ItemBase,
    Patient,
    Pedagogy,
    Rationale,
    ScoringRule,
)

log = logging.getLogger(__name__)

DEFAULT_BANK_PATH = Path(__file__).with_name("data") / "case_studies.json"

_CAMEL_RX = re.compile(r"(?<!^)(?=[A-Z])")

_CACHE: Dict[str, List[CaseStudy]] = {}


def snake(key: str) -> str:
    return _CAMEL_RX.sub("_", key).lower()


def snake_keys(value: Any) -> Any:
    """Recursively convert mapping keys; ``correctMatches`` rows keep their ids."""

    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            sk = snake(k) if isinstance(k, str) else k
            if sk in ("correct_matches", "partial_map", "values", "metadata"):
                out[sk] = copy.deepcopy(v)
            else:
                out[sk] = snake_keys(v)
        return out
    if isinstance(value, list):
        return [snake_keys(v) for v in value]
    return value


def _only_fields(cls, raw: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    dropped = sorted(k for k in raw if k not in names)
    if dropped:
        log.debug("%s: ignoring fields %s", cls.__name__, dropped)
    return {k: v for k, v in raw.items() if k in names}


def _fold_bowtie(raw: Dict[str, Any]) -> None:
    legacy = raw.pop("correct_answers", None)
    if isinstance(legacy, dict):
        raw.setdefault("correct_action_ids", list(legacy.get("actions") or []))
        raw.setdefault("correct_parameter_ids", list(legacy.get("parameters") or []))
        if legacy.get("condition"):
            raw.setdefault("condition", legacy["condition"])
    data = raw.pop("bowtie_data", None)
    if isinstance(data, dict):
        raw.setdefault("actions", list(data.get("action_options") or []))
        raw.setdefault("parameters", list(data.get("parameter_options") or []))
        conditions = [c.get("text", "") if isinstance(c, dict) else str(c) for c in data.get("condition_options") or []]
        raw.setdefault("potential_conditions", conditions)


def _inferred_max(raw: Dict[str, Any]) -> int:
    t = raw.get("type")
    if t in DICHOTOMOUS_TYPES or t == "orderedResponse":
        return 1
    if t == "bowtie":
        return 5
    for key in ("correct_option_ids", "correct_hotspot_ids", "correct_span_indices", "correct_matches", "blanks"):
        if raw.get(key):
            return len(raw[key])
    return 1


def _scoring(raw: Dict[str, Any]) -> ScoringRule:
    block = raw.get("scoring")
    if not isinstance(block, dict):
        method = "dichotomous" if _inferred_max(raw) == 1 else "polytomous"
        return ScoringRule(method=method, max_points=_inferred_max(raw))
    return ScoringRule(
        method=str(block.get("method") or "polytomous"),
        max_points=block.get("max_points") if block.get("max_points") is not None else _inferred_max(raw),
        partial_map=block.get("partial_map"),
    )


def item_from_dict(data: Dict[str, Any]) -> ItemBase:
    """Build the dataclass for one authored item (camelCase or snake_case keys)."""

    raw = snake_keys(data)
    t = str(raw.get("type") or "")
    if t == "bowtie":
        _fold_bowtie(raw)

    raw["scoring"] = _scoring(raw)
    ped = raw.get("pedagogy")
    raw["pedagogy"] = Pedagogy(**_only_fields(Pedagogy, ped)) if isinstance(ped, dict) else None
    rat = raw.get("rationale")
    raw["rationale"] = Rationale(**_only_fields(Rationale, rat)) if isinstance(rat, dict) else None

    cls = ITEM_CLASSES.get(t)
    if cls is None:
        log.warning("item %s has unrecognised type %r; it will score 0", raw.get("id"), t)
        cls = ItemBase
    return cls(**_only_fields(cls, raw))


def case_study_from_dict(data: Dict[str, Any]) -> CaseStudy:
    raw = snake_keys({k: v for k, v in data.items() if k != "items"})
    patient = raw.get("patient")
    phases: Dict[int, Any] = {}
    for key, update in (raw.get("ehr_phases") or {}).items():
        try:
            phases[int(key)] = clinical_data_from_dict(update)
        except (TypeError, ValueError):
            log.warning("case %s: dropping EHR phase with bad index %r", raw.get("id"), key)
    return CaseStudy(
        id=str(raw["id"]),
        title=str(raw.get("title") or raw["id"]),
        patient=Patient(**_only_fields(Patient, patient)) if isinstance(patient, dict) else None,
        clinical_data=clinical_data_from_dict(raw.get("clinical_data") or {}),
        items=[item_from_dict(it) for it in data.get("items") or []],
        time_limit=raw.get("time_limit"),
        ehr_phases=phases,
    )


def load_case_studies(path: Optional[str] = None) -> List[CaseStudy]:
    src = Path(path or load_config().get("CASE_BANK_PATH") or DEFAULT_BANK_PATH)
    key = str(src.resolve())
    if key not in _CACHE:
        raw = json.loads(src.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("cases") or [raw]
        _CACHE[key] = [case_study_from_dict(c) for c in raw]
        log.info("loaded %d case studies from %s", len(_CACHE[key]), src)
    return _CACHE[key]


def get_case_study(case_id: str, path: Optional[str] = None) -> Optional[CaseStudy]:
    return next((cs for cs in load_case_studies(path) if cs.id == case_id), None)


def public_item_view(item: Optional[ItemBase]) -> Optional[Dict[str, Any]]:
    """Item as shown to the learner: no answer key, no rationale."""

    if item is None:
        return None
    out: Dict[str, Any] = {}
    for f in fields(item):
        if f.name in ANSWER_KEY_FIELDS:
            continue
        value = getattr(item, f.name)
        if f.name == "blanks":
            value = [{k: v for k, v in b.items() if k != "correct_option"} for b in value if isinstance(b, dict)]
        elif f.name in ("pedagogy", "scoring"):
            value = None if value is None else dict(value.__dict__)
        out[f.name] = copy.deepcopy(value)
    return out
