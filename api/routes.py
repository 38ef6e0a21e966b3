from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, status

from api.schemas import (
    BlockItemOut,
    BlockOut,
    DosePreviewOut,
    EnrollmentCreated,
    EnrollmentOut,
    ListResponse,
    ProgramStructureOut,
    RebuildOut,
    SyncReportOut,
    WorkoutOut,
)
from core.config import get_settings
from core.db import get_query_stats, session_scope
from core.errors import NotFoundError
from core.services.assignment import assign_program_with_retry
from core.services.catalog_sync import rebuild_derived_view, sync_to_operational_catalog
from core.services.dose import compute_dose, validate_dose
from core.services.lifecycle import set_movement_status, set_workout_status
from core.services.queries import (
    fetch_active_enrollment,
    fetch_block_items,
    fetch_program_structure,
    fetch_today_workout,
    fetch_upcoming_workouts,
    fetch_workout_blocks,
    fetch_workout_history,
)
from core.validators import AssignProgramInput, DosePreviewInput, MovementStatusInput, WorkoutStatusInput

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/v1")


@router.get("/health", tags=["system"])
def health():
    stats = get_query_stats()
    return {"status": "ok", "queries": {"total": stats.total, "slow": stats.slow, "p95_ms": stats.p95_ms}}


@router.get("/users/{user_id}/enrollment", response_model=EnrollmentOut, tags=["enrollments"])
def get_active_enrollment(user_id: str):
    with session_scope() as s:
        enrollment = fetch_active_enrollment(s, user_id)
        if enrollment is None:
            raise NotFoundError(f"No active enrollment for user {user_id}")
        return EnrollmentOut.model_validate(enrollment)


@router.get("/users/{user_id}/workouts/today", response_model=Optional[WorkoutOut], tags=["workouts"])
def get_today_workout(user_id: str, on: Optional[date] = Query(None)):
    with session_scope() as s:
        workout = fetch_today_workout(s, user_id, on)
        return WorkoutOut.model_validate(workout) if workout is not None else None


@router.get("/users/{user_id}/workouts/upcoming", response_model=ListResponse[WorkoutOut], tags=["workouts"])
def get_upcoming_workouts(
    user_id: str,
    on: Optional[date] = Query(None),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    with session_scope() as s:
        rows = fetch_upcoming_workouts(s, user_id, on, limit=limit)
        items = [WorkoutOut.model_validate(r) for r in rows]
    return ListResponse[WorkoutOut](items=items, count=len(items))


@router.get("/users/{user_id}/workouts/history", response_model=ListResponse[WorkoutOut], tags=["workouts"])
def get_workout_history(
    user_id: str,
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    with session_scope() as s:
        rows = fetch_workout_history(s, user_id, limit=limit)
        items = [WorkoutOut.model_validate(r) for r in rows]
    return ListResponse[WorkoutOut](items=items, count=len(items))


@router.post("/enrollments", response_model=EnrollmentCreated, status_code=status.HTTP_201_CREATED, tags=["enrollments"])
def create_enrollment(body: AssignProgramInput):
    enrollment_id = assign_program_with_retry(
        body.user_id,
        body.template_slug,
        body.start_date,
        body.weekday_offsets,
        timezone=body.timezone,
        notes=body.notes,
    )
    return EnrollmentCreated(enrollment_id=enrollment_id)


@router.get("/enrollments/{enrollment_id}/structure", response_model=ProgramStructureOut, tags=["enrollments"])
def get_program_structure(enrollment_id: str):
    with session_scope() as s:
        return ProgramStructureOut.model_validate(fetch_program_structure(s, enrollment_id))


@router.get("/workouts/{workout_id}/blocks", response_model=list[BlockOut], tags=["workouts"])
def get_workout_blocks(workout_id: int):
    with session_scope() as s:
        return [BlockOut.model_validate(b) for b in fetch_workout_blocks(s, workout_id)]


@router.get("/blocks/{block_id}/items", response_model=list[BlockItemOut], tags=["workouts"])
def get_block_items(block_id: int):
    with session_scope() as s:
        return [BlockItemOut.model_validate(i) for i in fetch_block_items(s, block_id)]


@router.patch("/workouts/{workout_id}/status", response_model=WorkoutOut, tags=["workouts"])
def update_workout_status(workout_id: int, body: WorkoutStatusInput):
    with session_scope() as s:
        workout = set_workout_status(
            s,
            workout_id,
            body.status,
            rpe_session=body.rpe_session,
            duration_minutes_actual=body.duration_minutes_actual,
            user_notes=body.user_notes,
        )
        return WorkoutOut.model_validate(workout)


@router.patch("/block-items/{item_id}/status", response_model=BlockItemOut, tags=["workouts"])
def update_movement_status(item_id: int, body: MovementStatusInput):
    with session_scope() as s:
        item = set_movement_status(s, item_id, body.status, actual_dose=body.actual_dose)
        return BlockItemOut.model_validate(item)


@router.post("/doses/preview", response_model=DosePreviewOut, tags=["doses"])
def preview_dose(body: DosePreviewInput):
    validate_dose(body.base_dose, label="base dose")
    planned = compute_dose(body.week_index, body.category, body.base_dose)
    return DosePreviewOut(week_index=body.week_index, category=body.category, base_dose=body.base_dose, planned_dose=planned)


@router.post("/admin/catalog/rebuild", response_model=RebuildOut, tags=["admin"])
def rebuild_catalog_view():
    with session_scope() as s:
        rows = rebuild_derived_view(s)
    return RebuildOut(rows=rows)


@router.post("/admin/catalog/sync", response_model=SyncReportOut, tags=["admin"])
def sync_catalog():
    with session_scope() as s:
        report = sync_to_operational_catalog(s)
    logger.info("admin_catalog_sync", extra={"ctx_changed": report.changed})
    return SyncReportOut(**report.as_dict())
