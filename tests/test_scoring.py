from __future__ import annotations

import pytest

from ngn_core.scoring import score_item
from ngn_core.types import (
    DragAndDropClozeItem,
    HighlightItem,
    HotspotItem,
    ItemBase,
    ScoringRule,
)
from tests.conftest import build_items


def _item(item_id: str):
    return next(it for it in build_items() if it.id == item_id)


def test_dichotomous_right_and_wrong():
    mc = _item("mc1")
    assert score_item(mc, "a").earned == 1
    wrong = score_item(mc, "b")
    assert (wrong.earned, wrong.max, wrong.ratio) == (0, 1, 0.0)


def test_select_all_plus_minus_floors_at_zero():
    sata = _item("sata1")
    assert score_item(sata, ["a", "b", "c"]).earned == 3
    assert score_item(sata, ["a", "b", "d"]).earned == 1
    assert score_item(sata, ["d", "e", "a"]).earned == 0
    assert score_item(sata, ["a", "b", "c"]).ratio == 1.0


def test_select_n_counts_only_first_n():
    sn = _item("sn1")
    assert score_item(sn, ["a", "c"]).earned == 2
    assert score_item(sn, ["b", "d", "a", "c"]).earned == 0
    assert score_item(sn, ["a", "b", "c"]).earned == 1
    assert score_item(sn, ["a"]).max == 2


def test_ordered_response_is_exact_only():
    od = _item("or1")
    assert score_item(od, ["a", "b", "c"]).earned == 1
    assert score_item(od, ["a", "c", "b"]).earned == 0
    assert score_item(od, ["a", "b"]).earned == 0


def test_bowtie_full_and_zero():
    bt = _item("bt1")
    full = score_item(bt, {"condition": "HF", "actions": ["a1", "a2"], "parameters": ["p1", "p2"]})
    assert (full.earned, full.max) == (5, 5)
    none = score_item(bt, {"condition": "PNA", "actions": ["a3"], "parameters": ["p3"]})
    assert (none.earned, none.max) == (0, 5)
    assert score_item(bt, "HF").earned == 0


def test_matrix_and_cloze_partial_credit():
    assert score_item(_item("mm1"), {"r1": "x", "r2": "x"}).earned == 1
    cz = _item("cz1")
    assert score_item(cz, {"b1": "x", "b2": "y"}).earned == 2
    assert score_item(cz, {"b1": "x"}).earned == 1


def test_linkage_is_all_or_nothing():
    item = DragAndDropClozeItem(
        id="dd", scoring=ScoringRule(method="linkage", max_points=1), options=["x", "y"],
        blanks=[{"id": "d1", "correct_option": "x"}, {"id": "d2", "correct_option": "y"}],
    )
    assert score_item(item, {"d1": "x", "d2": "y"}).earned == 1
    assert score_item(item, {"d1": "x", "d2": "x"}).earned == 0
    other = HotspotItem(id="h", scoring=ScoringRule(method="linkage"), correct_hotspot_ids=["h1"])
    assert score_item(other, ["h1"]).earned == 0


def test_highlight_and_hotspot_use_plus_minus():
    hl = HighlightItem(id="hl", passage="[a] [b] [c]", correct_span_indices=[0, 2])
    assert score_item(hl, [0, 2]).earned == 2
    assert score_item(hl, [0, 1]).earned == 0
    hs = HotspotItem(id="hs", correct_hotspot_ids=["h1"])
    assert score_item(hs, ["h1"]).max == 1


@pytest.mark.parametrize("answer", [None, 42, {"x": 1}, [["nested"]], "text"])
def test_wrong_shapes_never_raise(answer):
    for item in build_items():
        res = score_item(item, answer)
        assert res.earned == 0
        assert 0.0 <= res.ratio <= 1.0


def test_unknown_type_and_missing_item():
    assert score_item(ItemBase(id="x", type="essay"), "anything").earned == 0
    res = score_item(None, "a")
    assert (res.earned, res.max, res.ratio) == (0, 1, 0.0)
    assert score_item(_item("bt1"), None).max == 5


def test_repeated_picks_count_once():
    sata = _item("sata1")
    assert score_item(sata, ["a", "a", "a"]).earned == 1
    assert score_item(sata, ["a", "a", "d"]).earned == 0
    # first two distinct picks are "a" and "c"
    assert score_item(_item("sn1"), ["a", "a", "c", "b"]).earned == 2
    bt = score_item(_item("bt1"), {"condition": "HF", "actions": ["a1"] * 4 + ["a2"] * 4,
                                   "parameters": ["p1"] * 4 + ["p2"] * 4})
    assert (bt.earned, bt.max, bt.ratio) == (5, 5, 1.0)


@pytest.mark.parametrize(
    "item_id, answer",
    [
        ("sata1", ["a", "b", "c", "a", "b", "c"]),
        ("sn1", ["a", "a", "a", "a"]),
        ("bt1", {"condition": "HF", "actions": ["a1", "a1", "a2", "a2"], "parameters": ["p2", "p2", "p1"]}),
        ("mm1", {"r1": "x", "r2": "y", "r3": "x"}),
        ("cz1", {"b1": "x", "b2": "y", "b3": "x"}),
    ],
)
def test_earned_never_exceeds_max(item_id, answer):
    result = score_item(_item(item_id), answer)
    assert result.earned <= result.max
    assert 0.0 <= result.ratio <= 1.0
