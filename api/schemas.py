from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    program_slug_snapshot: str
    program_name_snapshot: str
    template_version_snapshot: int
    start_date: dt_date
    workouts_per_week: int
    weekday_offsets: list[int]
    timezone: str
    status: str
    notes: Optional[str] = None
    created_at: Optional[dt_datetime] = None


class EnrollmentCreated(BaseModel):
    enrollment_id: str


class WorkoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    enrollment_id: str
    week_index: int
    day_index: int
    phase_index: Optional[int] = None
    phase_week_index: Optional[int] = None
    title_snapshot: str
    scheduled_date: dt_date
    status: str
    rpe_session: Optional[float] = None
    duration_minutes_actual: Optional[int] = None
    user_notes: Optional[str] = None
    started_at: Optional[dt_datetime] = None
    completed_at: Optional[dt_datetime] = None


class BlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    workout_instance_id: int
    sequence: int
    block_name_snapshot: str
    category_label_snapshot: str


class BlockItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    block_instance_id: int
    sequence: int
    movement_id: int
    movement_name_snapshot: str
    base_dose_snapshot: dict[str, Any] = Field(default_factory=dict)
    planned_dose: dict[str, Any] = Field(default_factory=dict)
    actual_dose: Optional[dict[str, Any]] = None
    status: str
    started_at: Optional[dt_datetime] = None
    completed_at: Optional[dt_datetime] = None


class PhaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase_index: Optional[int] = None
    week_count: int
    week_indexes: list[int]


class WeekOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_index: int
    phase_index: Optional[int] = None
    phase_week_index: Optional[int] = None
    workout_ids: list[int]
    first_date: Optional[dt_date] = None
    last_date: Optional[dt_date] = None


class ProgramStructureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enrollment: EnrollmentOut
    phases: list[PhaseOut]
    weeks: list[WeekOut]
    workouts: list[WorkoutOut]


class DosePreviewOut(BaseModel):
    week_index: int
    category: str
    base_dose: dict[str, Any]
    planned_dose: dict[str, Any]


class SyncReportOut(BaseModel):
    inserted: int
    updated: int
    unchanged: int
    orphaned: int


class RebuildOut(BaseModel):
    rows: int


class ListResponse(BaseModel, Generic[T]):
    items: list[T]
    count: int
