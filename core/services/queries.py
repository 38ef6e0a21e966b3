"""Read operations exposed to the surrounding application.

Program structure is rebuilt from the instance snapshots (phase and week
indexes stored on each workout), never from the template tables.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.errors import NotFoundError
from core.models import BlockInstance, BlockItemInstance, Enrollment, WorkoutInstance
from core.services.assignment import ACTIVE_ENROLLMENT_STATUSES


@dataclass
class PhaseSummary:
    phase_index: Optional[int]
    week_count: int
    week_indexes: list[int] = field(default_factory=list)


@dataclass
class WeekSummary:
    week_index: int
    phase_index: Optional[int]
    phase_week_index: Optional[int]
    workout_ids: list[int] = field(default_factory=list)
    first_date: Optional[date] = None
    last_date: Optional[date] = None


@dataclass
class ProgramStructure:
    enrollment: Enrollment
    phases: list[PhaseSummary]
    weeks: list[WeekSummary]
    workouts: list[WorkoutInstance]


def fetch_active_enrollment(s: Session, user_id: str) -> Optional[Enrollment]:
    """Most recently created planned/active enrollment for the user."""
    return (
        s.execute(
            select(Enrollment)
            .where(Enrollment.user_id == str(user_id), Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES))
            .order_by(Enrollment.created_at.desc(), Enrollment.start_date.desc())
        )
        .scalars()
        .first()
    )


def fetch_today_workout(s: Session, user_id: str, today: Optional[date] = None) -> Optional[WorkoutInstance]:
    enrollment = fetch_active_enrollment(s, user_id)
    if enrollment is None:
        return None
    today = today or date.today()
    return s.execute(
        select(WorkoutInstance).where(
            WorkoutInstance.enrollment_id == enrollment.id,
            WorkoutInstance.scheduled_date == today,
        )
    ).scalar_one_or_none()


def fetch_upcoming_workouts(s: Session, user_id: str, today: Optional[date] = None, limit: int = 5) -> list[WorkoutInstance]:
    enrollment = fetch_active_enrollment(s, user_id)
    if enrollment is None:
        return []
    today = today or date.today()
    return list(
        s.execute(
            select(WorkoutInstance)
            .where(WorkoutInstance.enrollment_id == enrollment.id, WorkoutInstance.scheduled_date >= today)
            .order_by(WorkoutInstance.scheduled_date)
            .limit(limit)
        ).scalars()
    )


def fetch_workout_history(s: Session, user_id: str, limit: int = 10) -> list[WorkoutInstance]:
    """Completed or skipped workouts across all of the user's enrollments, newest first."""
    return list(
        s.execute(
            select(WorkoutInstance)
            .join(Enrollment, Enrollment.id == WorkoutInstance.enrollment_id)
            .where(Enrollment.user_id == str(user_id), WorkoutInstance.status.in_(("completed", "skipped")))
            .order_by(WorkoutInstance.scheduled_date.desc())
            .limit(limit)
        ).scalars()
    )


def fetch_program_structure(s: Session, enrollment_id: str) -> ProgramStructure:
    enrollment = s.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise NotFoundError(f"Enrollment {enrollment_id} not found")
    workouts = list(
        s.execute(
            select(WorkoutInstance)
            .where(WorkoutInstance.enrollment_id == enrollment_id)
            .order_by(WorkoutInstance.week_index, WorkoutInstance.day_index)
        ).scalars()
    )

    weeks: dict[int, WeekSummary] = {}
    for w in workouts:
        week = weeks.get(w.week_index)
        if week is None:
            week = weeks[w.week_index] = WeekSummary(w.week_index, w.phase_index, w.phase_week_index)
        week.workout_ids.append(w.id)
        week.first_date = min(filter(None, (week.first_date, w.scheduled_date)))
        week.last_date = max(filter(None, (week.last_date, w.scheduled_date)))

    by_phase: dict[Optional[int], list[int]] = defaultdict(list)
    for week in weeks.values():
        by_phase[week.phase_index].append(week.week_index)
    phases = [
        PhaseSummary(phase_index=idx, week_count=len(idxs), week_indexes=sorted(idxs))
        for idx, idxs in sorted(by_phase.items(), key=lambda kv: (kv[0] is None, kv[0] or 0))
    ]
    return ProgramStructure(
        enrollment=enrollment,
        phases=phases,
        weeks=[weeks[k] for k in sorted(weeks)],
        workouts=workouts,
    )


def fetch_workout_blocks(s: Session, workout_instance_id: int) -> list[BlockInstance]:
    if s.get(WorkoutInstance, workout_instance_id) is None:
        raise NotFoundError(f"Workout instance {workout_instance_id} not found")
    return list(
        s.execute(
            select(BlockInstance)
            .where(BlockInstance.workout_instance_id == workout_instance_id)
            .order_by(BlockInstance.sequence)
        ).scalars()
    )


def fetch_block_items(s: Session, block_instance_id: int) -> list[BlockItemInstance]:
    if s.get(BlockInstance, block_instance_id) is None:
        raise NotFoundError(f"Block instance {block_instance_id} not found")
    return list(
        s.execute(
            select(BlockItemInstance)
            .where(BlockItemInstance.block_instance_id == block_instance_id)
            .order_by(BlockItemInstance.sequence)
        ).scalars()
    )
