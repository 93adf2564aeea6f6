from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


CJMM_STEPS: tuple[str, ...] = (
    "recognizeCues",
    "analyzeCues",
    "prioritizeHypotheses",
    "generateSolutions",
    "takeAction",
    "evaluateOutcomes",
)

# stress cascade thresholds
STRESS_WINDOW_MS: int = 60_000
STRESS_BURST_WINDOW_MS: int = 5_000
PARALYSIS_IDLE_MS: int = 30_000
PANIC_ANSWER_CHANGES: int = 6
PANIC_CLICK_RATE: float = 2.0
PANIC_UNIQUE_TARGETS: int = 3
HESITANT_ANSWER_CHANGES: int = 3
HESITANT_TAB_SWITCHES: int = 5
HESITANT_AVG_GAP_MS: float = 8_000.0

STRESS_POLL_INTERVAL_SEC: float = 2.0
STRESS_POLLING_ENABLED: bool = True
STRESS_WALL_CLOCK_NOW: bool = False

BAYES_PRIOR: float = 0.5
BAYES_MIN_DENOMINATOR: float = 0.001

LOCK_AFTER_COMPLETE: bool = True

MEWS_RAPID_RESPONSE: int = 5
MAP_HYPOTENSION: float = 65.0
MAP_HYPERTENSIVE: float = 110.0

BANK_MIN_ITEMS_PER_CASE: int = 6
BANK_EXPECT_FULL_CJMM: bool = True

AUDIT_EXPORT_ENABLED: bool = True

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "answer_changes",
    "tab_switches",
    "click_rate",
    "time_since_last_action",
    "unique_targets_5s",
    "avg_gap",
)
# // env overrides for staging/ops; defaults match the published cascade.
STRESS_WINDOW_MS = _env_int("STRESS_WINDOW_MS", STRESS_WINDOW_MS)
STRESS_POLL_INTERVAL_SEC = _env_float("STRESS_POLL_INTERVAL_SEC", STRESS_POLL_INTERVAL_SEC)
STRESS_POLLING_ENABLED = _env_bool("STRESS_POLLING_ENABLED", STRESS_POLLING_ENABLED)
STRESS_WALL_CLOCK_NOW = _env_bool("STRESS_WALL_CLOCK_NOW", STRESS_WALL_CLOCK_NOW)
LOCK_AFTER_COMPLETE = _env_bool("LOCK_AFTER_COMPLETE", LOCK_AFTER_COMPLETE)
BANK_MIN_ITEMS_PER_CASE = _env_int("BANK_MIN_ITEMS_PER_CASE", BANK_MIN_ITEMS_PER_CASE)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    if e.get("CASE_BANK_PATH"): cfg["CASE_BANK_PATH"] = e.get("CASE_BANK_PATH")
    if e.get("DATA_DIR"): cfg["DATA_DIR"] = e.get("DATA_DIR")
    return cfg
