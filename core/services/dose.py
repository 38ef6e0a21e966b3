"""Week-by-week progressive dosing for prescribed movements.

A dose is a small map of named numeric training parameters (reps, load_kg,
time_s, ...). ``compute_dose`` applies a category-specific linear curve to the
fields that category progresses:

- strength / power / hypertrophy push load (and reps for hypertrophy) upward
- mobility / recovery extend hold time, holding load constant
- aerobic / conditioning extend time and distance
- stability extends time and reps

The calculator never fails. Every known metric is clamped into its declared
range, so the output always passes ``validate_dose``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from numbers import Real
from typing import Any

from core.services.validation import validate_known_keys, validate_score_range

# Closed enumeration of dose metrics with their (min, max) bounds.
DOSE_METRIC_RANGES: dict[str, tuple[float, float]] = {
    "reps": (0, 100),
    "sets": (0, 20),
    "load_kg": (0, 500),
    "time_s": (0, 7200),
    "distance_m": (0, 50000),
    "rest_s": (0, 600),
    "rpe": (0, 10),
}

# Progressed values are rounded to these increments (plate size, 5 s, ...).
METRIC_STEP: dict[str, float] = {
    "reps": 1,
    "sets": 1,
    "load_kg": 0.5,
    "time_s": 5,
    "distance_m": 10,
    "rest_s": 5,
    "rpe": 0.5,
}


@dataclass(frozen=True)
class ProgressionCurve:
    """Linear weekly growth rate per progressed metric."""
    category: str
    rates: Mapping[str, float]

    def factor(self, metric: str, week_index: int) -> float:
        return 1.0 + self.rates.get(metric, 0.0) * (max(1, week_index) - 1)


PROGRESSION_CURVES: dict[str, ProgressionCurve] = {
    c.category: c
    for c in (
        ProgressionCurve("strength", {"load_kg": 0.025}),
        ProgressionCurve("power", {"load_kg": 0.015}),
        ProgressionCurve("hypertrophy", {"load_kg": 0.02, "reps": 0.02}),
        ProgressionCurve("mobility", {"time_s": 0.05}),
        ProgressionCurve("recovery", {"time_s": 0.03}),
        ProgressionCurve("aerobic", {"time_s": 0.05, "distance_m": 0.05}),
        ProgressionCurve("conditioning", {"time_s": 0.04}),
        ProgressionCurve("stability", {"time_s": 0.04, "reps": 0.03}),
    )
}

CATEGORY_ALIASES: dict[str, str] = {
    "endurance": "aerobic",
    "cardio": "aerobic",
    "core": "stability",
    "balance": "stability",
    "plyometric": "power",
    "flexibility": "mobility",
    "warmup": "mobility",
    "cooldown": "recovery",
}


def normalize_category(category: str | None) -> str:
    token = str(category or "").strip().lower().replace("-", "").replace(" ", "_")
    return CATEGORY_ALIASES.get(token, token)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and not math.isnan(value)


def _clamp(metric: str, value: float) -> float:
    lo, hi = DOSE_METRIC_RANGES[metric]
    return min(hi, max(lo, value))


def _round_to_step(metric: str, value: float) -> float:
    step = METRIC_STEP.get(metric, 1)
    return math.floor(value / step + 0.5) * step


def _as_plain_number(value: float) -> float | int:
    return int(value) if float(value).is_integer() else round(value, 2)


def clamp_dose(dose: Mapping[str, Any]) -> dict[str, Any]:
    """Clamp known numeric metrics into range; everything else passes through."""
    out: dict[str, Any] = {}
    for key, value in dose.items():
        if key in DOSE_METRIC_RANGES and _is_number(value):
            out[key] = _as_plain_number(_clamp(key, float(value)))
        else:
            out[key] = value
    return out


def compute_dose(week_index: int, category: str, base_dose: Mapping[str, Any]) -> dict[str, Any]:
    """Return the dose prescribed for ``week_index`` (1-based) of a program.

    Deterministic and monotonic non-decreasing in ``week_index`` for every
    field. Only keys present in ``base_dose`` appear in the result.
    """
    curve = PROGRESSION_CURVES.get(normalize_category(category))
    week = max(1, int(week_index))
    out: dict[str, Any] = {}
    for key, value in base_dose.items():
        if key not in DOSE_METRIC_RANGES or not _is_number(value):
            out[key] = value
            continue
        base = _clamp(key, float(value))
        if curve is None or key not in curve.rates or week == 1:
            out[key] = _as_plain_number(base)
            continue
        progressed = max(base, _round_to_step(key, base * curve.factor(key, week)))
        out[key] = _as_plain_number(_clamp(key, progressed))
    return out


def validate_dose(dose: Mapping[str, Any], label: str = "dose") -> None:
    validate_known_keys(dose, DOSE_METRIC_RANGES.keys(), label=label)
    for key, value in dose.items():
        lo, hi = DOSE_METRIC_RANGES[key]
        validate_score_range({key: value}, lo, hi, label=label)
