"""Bedside metrics over vital-sign and lab snapshots.

Pure functions; the session layer uses ``check_high_alert`` to surface
alerts for whatever clinical data the learner can currently see.
"""
from __future__ import annotations

import math
from typing import Dict, List

from . import config
from .types import ClinicalData, LabResult, VitalSign

__all__ = [
    "calculate_mews",
    "calculate_map",
    "flag_lab",
    "get_vital_color",
    "check_high_alert",
    "CRITICAL_THRESHOLDS",
]

# name substring -> (low, high); either side may be None
CRITICAL_THRESHOLDS: Dict[str, tuple] = {
    "potassium": (2.5, 6.5),
    "sodium": (120, 160),
    "glucose": (40, 500),
    "hemoglobin": (7, None),
    "platelets": (50_000, 1_000_000),
    "ph": (7.2, 7.6),
    "troponin": (None, 0.4),
}

_AVPU_POINTS = {"Alert": 0, "Voice": 1, "Pain": 2, "Unresponsive": 3}


def _hr_points(hr: float) -> int:
    if hr < 40: return 2
    if hr <= 50: return 1
    if 51 <= hr <= 100: return 0
    if 101 <= hr <= 110: return 1
    if 111 <= hr <= 129: return 2
    if hr >= 130: return 3
    return 0


def _sbp_points(sbp: float) -> int:
    if sbp < 70: return 3
    if sbp <= 80: return 2
    if sbp <= 100: return 1
    if sbp <= 199: return 0
    if sbp >= 200: return 2
    return 0


def _rr_points(rr: float) -> int:
    if rr < 9: return 2
    if rr <= 14: return 0
    if rr <= 20: return 1
    if rr <= 29: return 2
    if rr >= 30: return 3
    return 0


def _temp_points(temp_f: float) -> int:
    if temp_f < 95: return 2
    if temp_f <= 96.7: return 1
    if temp_f <= 100.3: return 0
    if temp_f <= 101.2: return 1
    return 2


def calculate_mews(vital: VitalSign) -> int:
    """Modified Early Warning Score (temperature in °F, consciousness on AVPU)."""

    return (
        _hr_points(vital.hr)
        + _sbp_points(vital.sbp)
        + _rr_points(vital.rr)
        + _temp_points(vital.temp)
        + _AVPU_POINTS.get(vital.consciousness, 0)
    )


def calculate_map(sbp: float, dbp: float) -> float:
    # half-up, one decimal
    return math.floor((dbp + (sbp - dbp) / 3.0) * 10 + 0.5) / 10


def flag_lab(lab: LabResult) -> str:
    """'C' on a critical breach, else 'L'/'H' against the reference range, else 'N'."""

    name_key = (lab.name or "").lower()
    for key, (low, high) in CRITICAL_THRESHOLDS.items():
        if key in name_key:
            if low is not None and lab.value < low:
                return "C"
            if high is not None and lab.value > high:
                return "C"

    if lab.value < lab.ref_low:
        return "L"
    if lab.value > lab.ref_high:
        return "H"
    return "N"


def _range_color(value: float, green_low: float, green_high: float, yellow_low: float, yellow_high: float) -> str:
    if green_low <= value <= green_high:
        return "green"
    if yellow_low <= value < green_low or green_high < value <= yellow_high:
        return "yellow"
    return "red"


def get_vital_color(vital: VitalSign) -> Dict[str, str]:
    return {
        "hr": _range_color(vital.hr, 60, 100, 50, 120),
        "sbp": _range_color(vital.sbp, 100, 139, 90, 159),
        "dbp": _range_color(vital.dbp, 60, 89, 50, 99),
        "rr": _range_color(vital.rr, 12, 20, 10, 24),
        "temp": _range_color(vital.temp, 97.0, 99.5, 96.0, 100.3),
        "spo2": "green" if vital.spo2 >= 95 else ("yellow" if vital.spo2 >= 90 else "red"),
        "pain": "green" if vital.pain <= 3 else ("yellow" if vital.pain <= 6 else "red"),
    }


def _fmt(value: float) -> str:
    return f"{value:g}"


def check_high_alert(clinical_data: ClinicalData) -> List[str]:
    """Alert strings for the latest vitals plus every critical lab."""

    alerts: List[str] = []
    if not clinical_data.vitals:
        return alerts

    latest = clinical_data.vitals[-1]
    mews = calculate_mews(latest)
    mean_ap = calculate_map(latest.sbp, latest.dbp)

    if mews >= config.MEWS_RAPID_RESPONSE:
        alerts.append(f"MEWS Score {mews}: Rapid response recommended")
    if mean_ap < config.MAP_HYPOTENSION:
        alerts.append(f"MAP {_fmt(mean_ap)}: Hypotension alert")
    if mean_ap > config.MAP_HYPERTENSIVE:
        alerts.append(f"MAP {_fmt(mean_ap)}: Hypertensive crisis alert")
    if latest.spo2 < 90:
        alerts.append(f"SpO2 {_fmt(latest.spo2)}%: Hypoxemia alert")
    if latest.hr > 150 or latest.hr < 40:
        alerts.append(f"Heart rate {_fmt(latest.hr)}: Arrhythmia alert")
    if latest.rr > 30 or latest.rr < 8:
        alerts.append(f"Respiratory rate {_fmt(latest.rr)}: Ventilation alert")
    if latest.temp > 103 or latest.temp < 94:
        alerts.append(f"Temperature {_fmt(latest.temp)}°F: Thermoregulation alert")

    for lab in clinical_data.labs:
        if flag_lab(lab) == "C":
            alerts.append(f"CRITICAL: {lab.name} = {_fmt(lab.value)} {lab.unit}")
    return alerts
