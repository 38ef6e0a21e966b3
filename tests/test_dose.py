import pytest

from core.errors import ValidationError
from core.services.dose import (
    DOSE_METRIC_RANGES,
    PROGRESSION_CURVES,
    clamp_dose,
    compute_dose,
    normalize_category,
    validate_dose,
)


def test_week_one_returns_base_dose():
    base = {"sets": 3, "reps": 10, "load_kg": 20}
    assert compute_dose(1, "strength", base) == base


def test_strength_progresses_load_only():
    week_5 = compute_dose(5, "strength", {"sets": 3, "reps": 10, "load_kg": 40})
    assert week_5["sets"] == 3
    assert week_5["reps"] == 10
    assert week_5["load_kg"] == 44


def test_mobility_extends_time_and_holds_load():
    week_3 = compute_dose(3, "mobility", {"time_s": 60, "load_kg": 5})
    assert week_3 == {"time_s": 65, "load_kg": 5}


@pytest.mark.parametrize("category", sorted(PROGRESSION_CURVES) + ["unknown", "endurance"])
def test_doses_never_decrease_week_over_week(category):
    base = {"reps": 8, "sets": 3, "load_kg": 27.5, "time_s": 45, "distance_m": 800, "rest_s": 60, "rpe": 6}
    previous = compute_dose(1, category, base)
    for week in range(2, 53):
        current = compute_dose(week, category, base)
        for key in base:
            assert current[key] >= previous[key], (category, week, key)
        previous = current


def test_compute_dose_is_deterministic():
    base = {"reps": 12, "load_kg": 17.5}
    assert compute_dose(7, "hypertrophy", base) == compute_dose(7, "hypertrophy", dict(base))


def test_output_always_passes_validation():
    extreme = {"reps": 100, "load_kg": 499, "time_s": 7100, "distance_m": 49000}
    for category in PROGRESSION_CURVES:
        for week in (1, 12, 52, 104):
            validate_dose(compute_dose(week, category, extreme))


def test_out_of_range_values_are_clamped():
    assert compute_dose(1, "strength", {"load_kg": 900, "reps": -4}) == {"load_kg": 500, "reps": 0}
    assert clamp_dose({"rpe": 14, "tempo": "3-1-1"}) == {"rpe": 10, "tempo": "3-1-1"}


def test_unknown_fields_pass_through_unchanged():
    out = compute_dose(6, "strength", {"load_kg": 40, "tempo": "3-1-1", "side": None})
    assert out["tempo"] == "3-1-1"
    assert out["side"] is None


def test_only_base_keys_appear_in_result():
    assert set(compute_dose(10, "aerobic", {"time_s": 600})) == {"time_s"}


def test_category_aliases():
    assert normalize_category("Endurance") == "aerobic"
    assert normalize_category("warm-up") == "mobility"
    assert normalize_category(None) == ""
    assert compute_dose(4, "Cardio", {"time_s": 600}) == compute_dose(4, "aerobic", {"time_s": 600})


def test_unknown_category_holds_dose_constant():
    assert compute_dose(20, "juggling", {"reps": 10}) == {"reps": 10}


def test_validate_dose_rejects_unknown_keys_and_ranges():
    with pytest.raises(ValidationError):
        validate_dose({"reps": 10, "tempo": "fast"})
    with pytest.raises(ValidationError):
        validate_dose({"rpe": 11})
    with pytest.raises(ValidationError):
        validate_dose({"reps": "ten"})
    validate_dose({k: hi for k, (_, hi) in DOSE_METRIC_RANGES.items()})


def test_week_indexes_below_one_are_week_one():
    base = {"load_kg": 40}
    assert compute_dose(0, "strength", base) == compute_dose(1, "strength", base) == base
    assert compute_dose(-3, "strength", base) == base
