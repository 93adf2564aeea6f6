from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from . import config
from .case_bank import load_case_studies
from .types import ITEM_CLASSES, CaseStudy
from .validators import validate_case_study

TYPE_TAGS: tuple[str, ...] = tuple(ITEM_CLASSES)


def _blank_case() -> dict[str, object]:
    return {
        "types": {t: 0 for t in TYPE_TAGS},
        "cjmm": {step: 0 for step in config.CJMM_STEPS},
        "items": 0,
        "phases": 0,
        "problems": [],
    }


def audit_cases(cases: Iterable[CaseStudy]) -> dict[str, object]:
    coverage: dict[str, dict[str, object]] = {}
    totals = {"cases": 0, "items": 0, "problems": 0}
    totals.update({t: 0 for t in TYPE_TAGS})

    for cs in cases:
        data = coverage.setdefault(cs.id, _blank_case())
        totals["cases"] += 1
        data["phases"] = len(cs.ehr_phases)

        for item in cs.items:
            data["items"] += 1  # type: ignore[operator]
            totals["items"] += 1
            types = data["types"]  # type: ignore[assignment]
            types[item.type] = types.get(item.type, 0) + 1
            if item.type in totals:
                totals[item.type] += 1
            step = item.pedagogy.cjmm_step if item.pedagogy is not None else None
            if step:
                cjmm = data["cjmm"]  # type: ignore[assignment]
                cjmm[step] = cjmm.get(step, 0) + 1

        problems = validate_case_study(cs)
        data["problems"] = problems
        totals["problems"] += len(problems)

    warnings: list[str] = []
    for case_id, data in coverage.items():
        n_items = data["items"]  # type: ignore[assignment]
        if n_items < config.BANK_MIN_ITEMS_PER_CASE:
            warnings.append(f"{case_id} has {n_items} items (<{config.BANK_MIN_ITEMS_PER_CASE})")

        if config.BANK_EXPECT_FULL_CJMM:
            cjmm = data["cjmm"]  # type: ignore[assignment]
            for step in config.CJMM_STEPS:
                if cjmm.get(step, 0) == 0:
                    warnings.append(f"{case_id} has no {step} item")

        for msg in data["problems"]:  # type: ignore[union-attr]
            warnings.append(msg)

    summary = {"coverage": coverage, "warnings": warnings, "totals": totals}
    return summary


def _format_row(label: str, keys: Iterable[str], data: dict[str, int]) -> str:
    parts = [label]
    for key in keys:
        if data.get(key, 0):
            parts.append(f"{key}:{data[key]:2d}")
    return "  ".join(parts)


def print_report(summary: dict[str, object]) -> None:
    coverage: dict[str, dict[str, object]] = summary["coverage"]  # type: ignore[assignment]
    print("=== Case Bank Coverage ===")
    for case_id in sorted(coverage):
        data = coverage[case_id]
        print(f"\nCase: {case_id}  items={data['items']}  phases={data['phases']}")
        print("  " + _format_row("types", TYPE_TAGS, data["types"]))  # type: ignore[arg-type]
        print("  " + _format_row("cjmm ", config.CJMM_STEPS, data["cjmm"]))  # type: ignore[arg-type]

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")

    totals = summary["totals"]
    print("\nTotals:", totals)


def write_summary(summary: dict[str, object], path: Path = Path("/tmp/case_bank_audit.json")) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(text)
    return text


def main(_argv: list[str] | None = None) -> int:
    path = _argv[0] if _argv else None
    summary = audit_cases(load_case_studies(path))
    print_report(summary)
    write_summary(summary)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    import sys
    raise SystemExit(main(sys.argv[1:]))
