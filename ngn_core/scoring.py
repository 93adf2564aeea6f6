"""Partial-credit scoring for the NGN item kinds.

Every scorer returns a :class:`ScoreResult` and never raises: a missing
answer key on the item, or an answer of the wrong shape, is worth zero.
"""
from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from .types import ItemBase, ScoreResult

__all__ = ["score_item"]

BOWTIE_MAX_POINTS = 5  # 2 actions + 1 condition + 2 parameters
_MISSING = object()


def _result(earned: float, max_points: float) -> ScoreResult:
    return ScoreResult(earned=earned, max=max_points, ratio=(earned / max_points) if max_points > 0 else 0.0)


def _declared_max(item, fallback: float) -> float:
    scoring = getattr(item, "scoring", None)
    declared = getattr(scoring, "max_points", None)
    return declared or fallback


def _as_list(value: Any) -> Optional[list]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


def _distinct(values: list) -> list:
    # first occurrence wins; ids may be unhashable
    out: list = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


def _plus_minus(item, correct_ids: Any, selected: Any) -> ScoreResult:
    """NCSBN +/- model: +1 per correct pick, -1 per incorrect pick, floored at 0."""

    correct = _as_list(correct_ids)
    picks = _as_list(selected)
    if correct is None or picks is None:
        return _result(0, _declared_max(item, 1))
    picks = _distinct(picks)
    hits = sum(1 for v in picks if v in correct)
    misses = len(picks) - hits
    return _result(max(0, hits - misses), _declared_max(item, len(correct)))


def _score_dichotomous(item, answer: Any) -> ScoreResult:
    correct_id = getattr(item, "correct_option_id", None)
    if not correct_id or not answer:
        return _result(0, 1)
    return _result(1 if answer == correct_id else 0, 1)


def _score_highlight(item, answer: Any) -> ScoreResult:
    return _plus_minus(item, getattr(item, "correct_span_indices", None), answer)


def _score_select_all(item, answer: Any) -> ScoreResult:
    return _plus_minus(item, getattr(item, "correct_option_ids", None), answer)


def _score_hotspot(item, answer: Any) -> ScoreResult:
    return _plus_minus(item, getattr(item, "correct_hotspot_ids", None), answer)


def _score_select_n(item, answer: Any) -> ScoreResult:
    # 0/1 per correct pick, no penalty; picks beyond n are ignored
    max_points = _declared_max(item, 1)
    correct = _as_list(getattr(item, "correct_option_ids", None))
    picks = _as_list(answer)
    if correct is None or picks is None:
        return _result(0, max_points)
    try:
        n = max(0, int(getattr(item, "n", 0) or 0))
    except (TypeError, ValueError):
        n = 0
    return _result(sum(1 for v in _distinct(picks)[:n] if v in correct), max_points)


def _score_ordered(item, answer: Any) -> ScoreResult:
    expected = _as_list(getattr(item, "correct_order", None))
    got = _as_list(answer)
    if not expected or got is None:
        return _result(0, 1)
    exact = len(expected) == len(got) and all(a == b for a, b in zip(expected, got))
    return _result(1 if exact else 0, 1)


def _score_matrix(item, answer: Any) -> ScoreResult:
    matches = getattr(item, "correct_matches", None)
    if not isinstance(matches, Mapping):
        return _result(0, _declared_max(item, 1))
    max_points = _declared_max(item, len(matches))
    if not isinstance(answer, Mapping):
        return _result(0, max_points)
    hits = sum(1 for row, col in answer.items() if row in matches and matches[row] == col)
    return _result(hits, max_points)


def _blank_hits(blanks: list, answer: Mapping) -> int:
    hits = 0
    for blank in blanks:
        if not isinstance(blank, Mapping):
            continue
        try:
            if answer.get(blank.get("id"), _MISSING) == blank.get("correct_option"):
                hits += 1
        except TypeError:
            continue
    return hits


def _score_cloze(item, answer: Any) -> ScoreResult:
    blanks = _as_list(getattr(item, "blanks", None))
    if blanks is None or not isinstance(answer, Mapping):
        return _result(0, _declared_max(item, 1))
    return _result(_blank_hits(blanks, answer), _declared_max(item, len(blanks)))


def _score_bowtie(item, answer: Any) -> ScoreResult:
    max_points = _declared_max(item, BOWTIE_MAX_POINTS)
    if not isinstance(answer, Mapping):
        return _result(0, max_points)
    correct_actions = _as_list(getattr(item, "correct_action_ids", None)) or []
    correct_params = _as_list(getattr(item, "correct_parameter_ids", None)) or []
    condition = getattr(item, "condition", "") or ""

    earned = 0
    if condition and answer.get("condition") == condition:
        earned += 1
    earned += sum(1 for a in _distinct(_as_list(answer.get("actions")) or []) if a in correct_actions)
    earned += sum(1 for p in _distinct(_as_list(answer.get("parameters")) or []) if p in correct_params)
    return _result(earned, max_points)


def _score_linkage(item, answer: Any) -> ScoreResult:
    """All-or-nothing: every blank must match for the single point."""

    if item.type in ("clozeDropdown", "dragAndDropCloze"):
        blanks = _as_list(getattr(item, "blanks", None))
        if not blanks or not isinstance(answer, Mapping):
            return _result(0, 1)
        all_correct = _blank_hits(blanks, answer) == len(blanks)
        return _result(1 if all_correct else 0, 1)
    return _result(0, 1)


_SCORERS: Dict[str, Callable[[Any, Any], ScoreResult]] = {
    "highlight": _score_highlight,
    "multipleChoice": _score_dichotomous,
    "selectAll": _score_select_all,
    "selectN": _score_select_n,
    "orderedResponse": _score_ordered,
    "matrixMatch": _score_matrix,
    "clozeDropdown": _score_cloze,
    "dragAndDropCloze": _score_cloze,
    "bowtie": _score_bowtie,
    "trend": _score_dichotomous,
    "priorityAction": _score_dichotomous,
    "hotspot": _score_hotspot,
    "graphic": _score_dichotomous,
    "audioVideo": _score_dichotomous,
    "chartExhibit": _score_dichotomous,
}


def score_item(item: Optional[ItemBase], answer: Any) -> ScoreResult:
    """
    Returns ScoreResult(earned, max, ratio) for one submitted answer.
    Linkage-scored items are routed before the per-type table.
    """
    if item is None or answer is None:
        return _result(0, _declared_max(item, 1))

    if getattr(getattr(item, "scoring", None), "method", None) == "linkage":
        return _score_linkage(item, answer)

    scorer = _SCORERS.get(str(getattr(item, "type", "")))
    if scorer is None:
        return _result(0, 1)
    return scorer(item, answer)
