from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db import store_errors
from core.errors import NotFoundError, StateError, ValidationError
from core.models import BlockItemInstance, Enrollment, WorkoutInstance
from core.services.dose import validate_dose
from core.services.validation import validate_score_range

logger = logging.getLogger(__name__)

STATUSES = ("planned", "in_progress", "completed", "skipped")
TERMINAL_STATUSES = frozenset({"completed", "skipped"})
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "planned": frozenset({"in_progress", "completed", "skipped"}),
    "in_progress": frozenset({"completed", "skipped"}),
    "completed": frozenset(),
    "skipped": frozenset(),
}

Trackable = Union[WorkoutInstance, BlockItemInstance]


def check_transition(current: str, target: str) -> bool:
    """Return True when the transition changes state, False for a non-terminal no-op.

    Raises ValidationError for unknown statuses and StateError for illegal moves.
    """
    if target not in STATUSES:
        raise ValidationError(f"Unknown status: {target!r}. Use one of {list(STATUSES)}")
    if current in TERMINAL_STATUSES:
        raise StateError(f"Status {current!r} is terminal; cannot move to {target!r}")
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise StateError(f"Illegal transition {current!r} -> {target!r}")
    return True


def _apply(row: Trackable, status: str, now: dt.datetime) -> None:
    row.status = status
    row.updated_at = now
    if status == "in_progress":
        row.started_at = now
    elif status == "completed":
        row.completed_at = now


def _roll_up_enrollment(s: Session, enrollment_id: str, now: dt.datetime) -> None:
    statuses = s.execute(
        select(WorkoutInstance.status).where(WorkoutInstance.enrollment_id == enrollment_id)
    ).scalars().all()
    if statuses and all(st in TERMINAL_STATUSES for st in statuses):
        enrollment = s.get(Enrollment, enrollment_id)
        if enrollment is not None and enrollment.status != "completed":
            enrollment.status = "completed"
            enrollment.updated_at = now
            logger.info("enrollment_completed", extra={"ctx_enrollment_id": enrollment_id})


def set_workout_status(
    s: Session,
    workout_instance_id: int,
    status: str,
    *,
    rpe_session: Optional[float] = None,
    duration_minutes_actual: Optional[int] = None,
    user_notes: Optional[str] = None,
    now: Optional[dt.datetime] = None,
) -> WorkoutInstance:
    with store_errors():
        workout = s.get(WorkoutInstance, workout_instance_id)
        if workout is None:
            raise NotFoundError(f"Workout instance {workout_instance_id} not found")
        if not check_transition(workout.status, status):
            return workout

        if rpe_session is not None:
            validate_score_range({"rpe_session": rpe_session}, 0, 10, label="workout completion")
        if duration_minutes_actual is not None and duration_minutes_actual < 0:
            raise ValidationError("duration_minutes_actual must be >= 0")

        now = now or dt.datetime.utcnow()
        previous = workout.status
        _apply(workout, status, now)
        if status == "completed":
            workout.rpe_session = rpe_session
            workout.duration_minutes_actual = duration_minutes_actual
        if user_notes is not None:
            workout.user_notes = user_notes
        s.flush()
        logger.info(
            "workout_status_changed",
            extra={"ctx_workout_id": workout.id, "ctx_from": previous, "ctx_to": status},
        )
        if status in TERMINAL_STATUSES:
            _roll_up_enrollment(s, workout.enrollment_id, now)
    return workout


def set_movement_status(
    s: Session,
    block_item_instance_id: int,
    status: str,
    *,
    actual_dose: Optional[Mapping[str, Any]] = None,
    now: Optional[dt.datetime] = None,
) -> BlockItemInstance:
    with store_errors():
        item = s.get(BlockItemInstance, block_item_instance_id)
        if item is None:
            raise NotFoundError(f"Block item instance {block_item_instance_id} not found")
        if not check_transition(item.status, status):
            return item
        if actual_dose is not None:
            validate_dose(actual_dose, label="actual dose")

        now = now or dt.datetime.utcnow()
        previous = item.status
        _apply(item, status, now)
        if actual_dose is not None:
            item.actual_dose = dict(actual_dose)
        s.flush()
    logger.info(
        "movement_status_changed",
        extra={"ctx_block_item_id": item.id, "ctx_from": previous, "ctx_to": status},
    )
    return item
