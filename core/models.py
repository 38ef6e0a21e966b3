from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _new_enrollment_id() -> str:
    return uuid.uuid4().hex


# ── Catalog ──────────────────────────────────────────────────────────────


class Equipment(Base):
    __tablename__ = "equipment"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)


class MovementPattern(Base):
    __tablename__ = "movement_patterns"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)


class MovementLibraryEntry(Base):
    __tablename__ = "movement_library_entries"
    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    pattern_id: Mapped[int | None] = mapped_column(ForeignKey("movement_patterns.id"))
    movement_type: Mapped[str] = mapped_column(String(40), default="strength")
    required_equipment: Mapped[list[int]] = mapped_column(JSON, default=list)
    sport_vector: Mapped[dict[str, float] | None] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    pattern: Mapped[MovementPattern | None] = relationship()
    tags: Mapped[list["MovementLibraryTag"]] = relationship(cascade="all, delete-orphan")
    contraindications: Mapped[list["MovementContraindication"]] = relationship(cascade="all, delete-orphan")
    impacts: Mapped[list["MovementLibraryImpact"]] = relationship(cascade="all, delete-orphan")


class MovementLibraryTag(Base):
    __tablename__ = "movement_library_tags"
    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("movement_library_entries.id"), index=True)
    tag: Mapped[str] = mapped_column(String(60))
    __table_args__ = (UniqueConstraint("entry_id", "tag", name="uq_library_tag"),)


class MovementContraindication(Base):
    __tablename__ = "movement_contraindications"
    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("movement_library_entries.id"), index=True)
    condition: Mapped[str] = mapped_column(String(120))
    severity: Mapped[str] = mapped_column(String(20), default="caution")


class MovementLibraryImpact(Base):
    __tablename__ = "movement_library_impacts"
    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("movement_library_entries.id"), index=True)
    module_key: Mapped[str] = mapped_column(String(40))
    score: Mapped[float] = mapped_column(Float)
    __table_args__ = (UniqueConstraint("entry_id", "module_key", name="uq_library_impact"),)


class MovementLibraryView(Base):
    """Read-optimised projection of the curated library, rebuilt in place."""

    __tablename__ = "movement_library_view"
    entry_id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str] = mapped_column(Text, default="")
    pattern: Mapped[str | None] = mapped_column(String(120))
    movement_type: Mapped[str] = mapped_column(String(40))
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    contraindications: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    required_equipment: Mapped[list[int]] = mapped_column(JSON, default=list)
    module_impact_vector: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    sport_vector: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    refreshed_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class Movement(Base):
    __tablename__ = "movements"
    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str | None] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    pattern: Mapped[str | None] = mapped_column(String(120))
    movement_type: Mapped[str] = mapped_column(String(40), default="strength")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    contraindications: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    required_equipment: Mapped[list[int]] = mapped_column(JSON, default=list)
    module_impact_vector: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    sport_vector: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    in_library: Mapped[bool] = mapped_column(Boolean, default=True)
    synced_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


# ── Templates ────────────────────────────────────────────────────────────


class ProgramTemplate(Base):
    __tablename__ = "program_templates"
    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), index=True)
    name: Mapped[str] = mapped_column(String(160))
    version: Mapped[int] = mapped_column(Integer, default=1)
    duration_weeks: Mapped[int] = mapped_column(Integer)
    workouts_per_week: Mapped[int] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    phases: Mapped[list["TemplatePhase"]] = relationship(order_by="TemplatePhase.phase_index")
    weeks: Mapped[list["TemplateWeek"]] = relationship(order_by="TemplateWeek.week_index")
    __table_args__ = (
        UniqueConstraint("slug", "version", name="uq_program_template_version"),
        CheckConstraint("workouts_per_week between 1 and 7"),
        CheckConstraint("duration_weeks >= 1"),
    )


class TemplatePhase(Base):
    __tablename__ = "template_phases"
    id: Mapped[int] = mapped_column(primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey("program_templates.id"), index=True)
    phase_index: Mapped[int] = mapped_column(Integer)
    week_count: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(120), default="")


class TemplateWeek(Base):
    __tablename__ = "template_weeks"
    id: Mapped[int] = mapped_column(primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey("program_templates.id"), index=True)
    phase_id: Mapped[int | None] = mapped_column(ForeignKey("template_phases.id"))
    week_index: Mapped[int] = mapped_column(Integer)
    phase_week_index: Mapped[int | None] = mapped_column(Integer)

    phase: Mapped[TemplatePhase | None] = relationship()
    workouts: Mapped[list["TemplateWorkout"]] = relationship(order_by="TemplateWorkout.day_index")
    __table_args__ = (UniqueConstraint("program_id", "week_index", name="uq_template_week"),)


class TemplateWorkout(Base):
    __tablename__ = "template_workouts"
    id: Mapped[int] = mapped_column(primary_key=True)
    week_id: Mapped[int] = mapped_column(ForeignKey("template_weeks.id"), index=True)
    day_index: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(160))

    blocks: Mapped[list["TemplateBlock"]] = relationship(order_by="TemplateBlock.sequence")
    __table_args__ = (UniqueConstraint("week_id", "day_index", name="uq_template_workout_day"),)


class TemplateBlock(Base):
    __tablename__ = "template_blocks"
    id: Mapped[int] = mapped_column(primary_key=True)
    workout_id: Mapped[int] = mapped_column(ForeignKey("template_workouts.id"), index=True)
    sequence: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(160))
    category: Mapped[str] = mapped_column(String(40))

    items: Mapped[list["TemplateBlockItem"]] = relationship(order_by="TemplateBlockItem.sequence")


class TemplateBlockItem(Base):
    __tablename__ = "template_block_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    block_id: Mapped[int] = mapped_column(ForeignKey("template_blocks.id"), index=True)
    sequence: Mapped[int] = mapped_column(Integer)
    movement_id: Mapped[int] = mapped_column(ForeignKey("movements.id"), index=True)
    base_dose: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)


# ── Instances ────────────────────────────────────────────────────────────


class Enrollment(Base):
    __tablename__ = "enrollments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_enrollment_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    program_id: Mapped[int | None] = mapped_column(ForeignKey("program_templates.id"))
    program_slug_snapshot: Mapped[str] = mapped_column(String(80))
    program_name_snapshot: Mapped[str] = mapped_column(String(160))
    template_version_snapshot: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[dt.date] = mapped_column(Date)
    workouts_per_week: Mapped[int] = mapped_column(Integer)
    weekday_offsets: Mapped[list[int]] = mapped_column(JSON, default=list)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    workouts: Mapped[list["WorkoutInstance"]] = relationship(
        back_populates="enrollment",
        cascade="all, delete-orphan",
        order_by="WorkoutInstance.scheduled_date",
    )


class WorkoutInstance(Base):
    __tablename__ = "workout_instances"
    id: Mapped[int] = mapped_column(primary_key=True)
    enrollment_id: Mapped[str] = mapped_column(ForeignKey("enrollments.id"), index=True)
    week_index: Mapped[int] = mapped_column(Integer)
    day_index: Mapped[int] = mapped_column(Integer)
    phase_index: Mapped[int | None] = mapped_column(Integer)
    phase_week_index: Mapped[int | None] = mapped_column(Integer)
    title_snapshot: Mapped[str] = mapped_column(String(160))
    scheduled_date: Mapped[dt.date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default="planned")
    rpe_session: Mapped[float | None] = mapped_column(Float)
    duration_minutes_actual: Mapped[int | None] = mapped_column(Integer)
    user_notes: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    enrollment: Mapped[Enrollment] = relationship(back_populates="workouts")
    blocks: Mapped[list["BlockInstance"]] = relationship(
        back_populates="workout",
        cascade="all, delete-orphan",
        order_by="BlockInstance.sequence",
    )
    __table_args__ = (
        UniqueConstraint("enrollment_id", "scheduled_date", name="uq_workout_instance_date"),
        CheckConstraint("status in ('planned', 'in_progress', 'completed', 'skipped')"),
    )


class BlockInstance(Base):
    __tablename__ = "block_instances"
    id: Mapped[int] = mapped_column(primary_key=True)
    workout_instance_id: Mapped[int] = mapped_column(ForeignKey("workout_instances.id"), index=True)
    sequence: Mapped[int] = mapped_column(Integer)
    block_name_snapshot: Mapped[str] = mapped_column(String(160))
    category_label_snapshot: Mapped[str] = mapped_column(String(40))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    workout: Mapped[WorkoutInstance] = relationship(back_populates="blocks")
    items: Mapped[list["BlockItemInstance"]] = relationship(
        back_populates="block",
        cascade="all, delete-orphan",
        order_by="BlockItemInstance.sequence",
    )


class BlockItemInstance(Base):
    __tablename__ = "block_item_instances"
    id: Mapped[int] = mapped_column(primary_key=True)
    block_instance_id: Mapped[int] = mapped_column(ForeignKey("block_instances.id"), index=True)
    sequence: Mapped[int] = mapped_column(Integer)
    movement_id: Mapped[int] = mapped_column(ForeignKey("movements.id"), index=True)
    movement_name_snapshot: Mapped[str] = mapped_column(String(160))
    base_dose_snapshot: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    planned_dose: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)
    actual_dose: Mapped[dict[str, float] | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="planned")
    started_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    block: Mapped[BlockInstance] = relationship(back_populates="items")
    __table_args__ = (
        CheckConstraint("status in ('planned', 'in_progress', 'completed', 'skipped')"),
    )
