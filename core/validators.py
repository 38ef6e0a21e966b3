"""Pydantic validation models for all user-facing data entry points."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from core.services.lifecycle import STATUSES
from core.services.scheduling import DAY_TO_INDEX


class AssignProgramInput(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    template_slug: str = Field(min_length=1, max_length=80)
    start_date: date
    weekday_offsets: list[Union[int, str]] = Field(min_length=1, max_length=7)
    timezone: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("user_id", "template_slug")
    @classmethod
    def strip_identifiers(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("weekday_offsets")
    @classmethod
    def valid_weekday_entries(cls, v):
        for entry in v:
            if isinstance(entry, int):
                if not 0 <= entry <= 6:
                    raise ValueError("day offsets must be within 0..6")
            elif entry.strip()[:3].title() not in DAY_TO_INDEX:
                raise ValueError(f"weekday must be one of {list(DAY_TO_INDEX)}")
        return v


class WorkoutStatusInput(BaseModel):
    status: str
    rpe_session: Optional[float] = Field(default=None, ge=0, le=10)
    duration_minutes_actual: Optional[int] = Field(default=None, ge=0, le=1440)
    user_notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        if v not in STATUSES:
            raise ValueError(f"status must be one of {list(STATUSES)}")
        return v


class MovementStatusInput(BaseModel):
    status: str
    actual_dose: Optional[dict[str, Any]] = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        if v not in STATUSES:
            raise ValueError(f"status must be one of {list(STATUSES)}")
        return v


class DosePreviewInput(BaseModel):
    week_index: int = Field(ge=1, le=104)
    category: str = Field(min_length=1, max_length=40)
    base_dose: dict[str, Any]
