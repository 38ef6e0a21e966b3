from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select

from core.config import get_settings
from core.db import Base, get_engine, reset_engine, session_scope
from core.errors import NotFoundError, SchedulingConflict, TransientStoreError, ValidationError
from core.models import (
    BlockInstance,
    BlockItemInstance,
    Enrollment,
    Movement,
    ProgramTemplate,
    TemplateBlock,
    TemplateBlockItem,
    TemplateWeek,
    TemplateWorkout,
    WorkoutInstance,
)
from core.services import assignment
from core.services.assignment import assign_program, assign_program_with_retry, resolve_active_template


def _setup_db(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "engine_test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("APP_ENV", "test")
    get_settings.cache_clear()
    reset_engine()
    Base.metadata.create_all(bind=get_engine())


def _seed_foundation() -> None:
    from core.services.catalog_sync import run_catalog_maintenance
    from db.seed import seed_foundation_program, seed_movement_library

    seed_movement_library()
    run_catalog_maintenance()
    seed_foundation_program()


def _build_template(
    s,
    slug: str,
    movement_ids: list[int],
    *,
    weeks: int = 2,
    workouts_per_week: int = 2,
    category: str = "strength",
    base_dose: dict | None = None,
    version: int = 1,
) -> ProgramTemplate:
    program = ProgramTemplate(
        slug=slug,
        name=slug.replace("-", " ").title(),
        version=version,
        duration_weeks=weeks,
        workouts_per_week=workouts_per_week,
    )
    s.add(program)
    s.flush()
    for week_index in range(1, weeks + 1):
        week = TemplateWeek(program_id=program.id, week_index=week_index, phase_week_index=week_index)
        for day_index in range(workouts_per_week):
            week.workouts.append(
                TemplateWorkout(
                    day_index=day_index,
                    title=f"Day {day_index + 1}",
                    blocks=[
                        TemplateBlock(
                            sequence=1,
                            name="Main",
                            category=category,
                            items=[
                                TemplateBlockItem(
                                    sequence=i,
                                    movement_id=mid,
                                    base_dose=dict(base_dose or {"sets": 3, "reps": 8, "load_kg": 40}),
                                )
                                for i, mid in enumerate(movement_ids, start=1)
                            ],
                        )
                    ],
                )
            )
        s.add(week)
    s.flush()
    return program


def _add_movement(s, name: str) -> int:
    movement = Movement(name=name, movement_type="strength")
    s.add(movement)
    s.flush()
    return movement.id


def _count(model) -> int:
    with session_scope() as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


def test_foundation_program_materializes_36_workouts(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()

    with session_scope() as s:
        enrollment_id = assign_program(
            s, "user-1", "foundation-12wk", date(2024, 1, 1), ["Mon", "Wed", "Fri"], today=date(2024, 1, 1)
        )

    with session_scope() as s:
        enrollment = s.get(Enrollment, enrollment_id)
        assert enrollment.status == "active"
        assert enrollment.weekday_offsets == [0, 2, 4]
        assert enrollment.program_slug_snapshot == "foundation-12wk"
        workouts = enrollment.workouts
        assert len(workouts) == 36
        assert [w.scheduled_date for w in workouts[:3]] == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]
        assert workouts[-1].scheduled_date == date(2024, 3, 22)
        assert workouts[-1].week_index == 12
        assert {w.phase_index for w in workouts} == {1, 2, 3}
        assert all(w.status == "planned" for w in workouts)
        assert len({w.scheduled_date for w in workouts}) == 36

        first_items = [i for b in workouts[0].blocks for i in b.items]
        assert [b.category_label_snapshot for b in workouts[0].blocks] == ["mobility", "strength", "aerobic"]
        assert len(first_items) == 4
        assert all(i.planned_dose == i.base_dose_snapshot for i in first_items)


def test_planned_dose_progresses_by_week(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()
    with session_scope() as s:
        enrollment_id = assign_program(s, "user-1", "foundation-12wk", date(2024, 1, 1), [0, 2, 4], today=date(2024, 1, 1))

    with session_scope() as s:
        rows = s.execute(
            select(WorkoutInstance.week_index, BlockItemInstance.planned_dose)
            .join(BlockInstance, BlockInstance.workout_instance_id == WorkoutInstance.id)
            .join(BlockItemInstance, BlockItemInstance.block_instance_id == BlockInstance.id)
            .where(
                WorkoutInstance.enrollment_id == enrollment_id,
                BlockItemInstance.movement_name_snapshot == "Goblet Squat",
            )
            .order_by(WorkoutInstance.week_index)
        ).all()
    loads = [dose["load_kg"] for _, dose in rows]
    assert loads[0] == 16
    assert loads[-1] == 20.5
    assert loads == sorted(loads)


def test_scheduling_conflict_writes_nothing(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()

    with pytest.raises(SchedulingConflict):
        with session_scope() as s:
            assign_program(s, "user-1", "foundation-12wk", date(2024, 1, 1), ["Mon", "Wed"], today=date(2024, 1, 1))

    with pytest.raises(SchedulingConflict):
        with session_scope() as s:
            assign_program(s, "user-1", "foundation-12wk", date(2024, 1, 1), ["Mon", "Mon", "Fri"], today=date(2024, 1, 1))

    assert _count(Enrollment) == 0
    assert _count(WorkoutInstance) == 0


def test_start_date_too_far_in_past_is_a_conflict(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()
    with pytest.raises(SchedulingConflict):
        with session_scope() as s:
            assign_program(s, "user-1", "foundation-12wk", date(2024, 1, 1), [0, 2, 4], today=date(2024, 6, 1))


def test_unknown_template_is_not_found(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with pytest.raises(NotFoundError):
        with session_scope() as s:
            assign_program(s, "user-1", "does-not-exist", date(2024, 1, 1), [0], today=date(2024, 1, 1))


def test_missing_movement_reference_rolls_back_everything(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        _build_template(s, "broken-plan", [squat, 999])

    with pytest.raises(ValidationError) as exc:
        with session_scope() as s:
            assign_program(s, "user-1", "broken-plan", date(2024, 1, 1), [0, 3], today=date(2024, 1, 1))
    assert "999" in exc.value.message

    assert _count(Enrollment) == 0
    assert _count(WorkoutInstance) == 0
    assert _count(BlockItemInstance) == 0


def test_out_of_range_base_dose_is_rejected(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        _build_template(s, "heavy-plan", [squat], base_dose={"reps": 5, "load_kg": 900})

    with pytest.raises(ValidationError):
        with session_scope() as s:
            assign_program(s, "user-1", "heavy-plan", date(2024, 1, 1), [0, 3], today=date(2024, 1, 1))
    assert _count(Enrollment) == 0


def test_template_with_wrong_workout_count_is_rejected(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        program = _build_template(s, "short-plan", [squat], weeks=2, workouts_per_week=2)
        program.workouts_per_week = 3

    with pytest.raises(ValidationError):
        with session_scope() as s:
            assign_program(s, "user-1", "short-plan", date(2024, 1, 1), [0, 2, 4], today=date(2024, 1, 1))


def test_snapshots_survive_template_and_catalog_edits(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        _build_template(s, "edit-plan", [squat])
    with session_scope() as s:
        enrollment_id = assign_program(s, "user-1", "edit-plan", date(2024, 1, 1), [0, 3], today=date(2024, 1, 1))

    with session_scope() as s:
        for workout in s.execute(select(TemplateWorkout)).scalars():
            workout.title = "Renamed"
        for item in s.execute(select(TemplateBlockItem)).scalars():
            item.base_dose = {"sets": 5, "reps": 3, "load_kg": 100}
        s.get(Movement, squat).name = "High Bar Squat"
        s.execute(select(ProgramTemplate)).scalar_one().name = "Edited"

    with session_scope() as s:
        enrollment = s.get(Enrollment, enrollment_id)
        assert enrollment.program_name_snapshot == "Edit Plan"
        assert {w.title_snapshot for w in enrollment.workouts} == {"Day 1", "Day 2"}
        items = [i for w in enrollment.workouts for b in w.blocks for i in b.items]
        assert {i.movement_name_snapshot for i in items} == {"Back Squat"}
        assert all(i.base_dose_snapshot == {"sets": 3, "reps": 8, "load_kg": 40} for i in items)


def test_latest_active_template_version_is_used(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        _build_template(s, "versioned", [squat], version=1)
        _build_template(s, "versioned", [squat], version=2)
        retired = _build_template(s, "versioned", [squat], version=3)
        retired.is_active = False

    with session_scope() as s:
        assert resolve_active_template(s, "versioned").version == 2
        enrollment_id = assign_program(s, "user-1", "versioned", date(2024, 1, 1), [0, 3], today=date(2024, 1, 1))
    with session_scope() as s:
        assert s.get(Enrollment, enrollment_id).template_version_snapshot == 2


def test_assignment_retries_transient_errors(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    with session_scope() as s:
        squat = _add_movement(s, "Back Squat")
        _build_template(s, "retry-plan", [squat])

    real_assign = assignment.assign_program
    calls = {"n": 0}

    def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise TransientStoreError("timeout")
        return real_assign(*args, **kwargs)

    monkeypatch.setattr(assignment, "assign_program", flaky)
    enrollment_id = assign_program_with_retry("user-1", "retry-plan", date(2024, 1, 1), [0, 3], today=date(2024, 1, 1))

    assert calls["n"] == 2
    assert _count(Enrollment) == 1
    with session_scope() as s:
        assert s.get(Enrollment, enrollment_id) is not None


def test_assignment_retry_gives_up_after_configured_attempts(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    monkeypatch.setenv("ASSIGNMENT_RETRY_ATTEMPTS", "2")
    get_settings.cache_clear()

    calls = {"n": 0}

    def always_down(*args, **kwargs):
        calls["n"] += 1
        raise TransientStoreError("down")

    monkeypatch.setattr(assignment, "assign_program", always_down)
    with pytest.raises(TransientStoreError):
        assign_program_with_retry("user-1", "any", date(2024, 1, 1), [0])
    assert calls["n"] == 2


def test_foundation_dates_fall_on_requested_weekdays(tmp_path, monkeypatch):
    _setup_db(tmp_path, monkeypatch)
    _seed_foundation()
    start = date(2024, 1, 1)
    with session_scope() as s:
        enrollment_id = assign_program(s, "user-2", "foundation-12wk", start, ["Mon", "Wed", "Fri"], today=start)
    with session_scope() as s:
        dates = [w.scheduled_date for w in s.get(Enrollment, enrollment_id).workouts]
    assert len(dates) == 36
    assert {d.weekday() for d in dates} == {0, 2, 4}
    assert all(a < b for a, b in zip(dates, dates[1:]))
    assert dates[0] >= start
