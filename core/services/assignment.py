"""Materialize a template program into a dated, per-user enrollment.

The whole hierarchy (enrollment → workouts → blocks → items) is validated and
built in memory, then added to the session in a single flush. The caller owns
the transaction (``session_scope``), so any failure leaves no partial
enrollment behind. Template text is copied into ``*_snapshot`` columns; the
instance rows never read the template again.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from core.config import get_settings
from core.db import session_scope, store_errors
from core.errors import NotFoundError, TransientStoreError, ValidationError
from core.models import (
    BlockInstance,
    BlockItemInstance,
    Enrollment,
    Movement,
    ProgramTemplate,
    TemplateBlock,
    TemplateWeek,
    TemplateWorkout,
    WorkoutInstance,
)
from core.services.dose import compute_dose, validate_dose
from core.services.scheduling import (
    WeekdayEntry,
    check_schedule_preconditions,
    normalize_weekday_offsets,
    week_dates,
)
from core.services.validation import validate_references

logger = logging.getLogger(__name__)

ACTIVE_ENROLLMENT_STATUSES = ("planned", "active")


def resolve_active_template(s: Session, slug: str) -> ProgramTemplate:
    """Latest active version of the template with this slug."""
    template = (
        s.execute(
            select(ProgramTemplate)
            .where(ProgramTemplate.slug == slug, ProgramTemplate.is_active.is_(True))
            .order_by(ProgramTemplate.version.desc())
        )
        .scalars()
        .first()
    )
    if template is None:
        raise NotFoundError(f"Unknown program template: {slug}")
    return template


def _load_template_weeks(s: Session, template: ProgramTemplate) -> list[TemplateWeek]:
    weeks = (
        s.execute(
            select(TemplateWeek)
            .where(TemplateWeek.program_id == template.id)
            .options(
                selectinload(TemplateWeek.phase),
                selectinload(TemplateWeek.workouts)
                .selectinload(TemplateWorkout.blocks)
                .selectinload(TemplateBlock.items),
            )
            .order_by(TemplateWeek.week_index)
        )
        .scalars()
        .all()
    )
    expected = list(range(1, template.duration_weeks + 1))
    found = [w.week_index for w in weeks]
    if found != expected:
        raise ValidationError(
            f"Template {template.slug} v{template.version} defines weeks {found}, expected 1..{template.duration_weeks}"
        )
    for week in weeks:
        if len(week.workouts) != template.workouts_per_week:
            raise ValidationError(
                f"Template week {week.week_index} defines {len(week.workouts)} workouts, "
                f"expected {template.workouts_per_week}"
            )
    return list(weeks)


def _movement_names(s: Session, weeks: Sequence[TemplateWeek]) -> dict[int, str]:
    ids = {
        item.movement_id
        for week in weeks
        for workout in week.workouts
        for block in workout.blocks
        for item in block.items
    }
    catalog = dict(s.execute(select(Movement.id, Movement.name).where(Movement.id.in_(ids))).all()) if ids else {}
    validate_references(ids, catalog.keys(), label="block item movement_id")
    return catalog


def _build_workout(
    week: TemplateWeek,
    workout: TemplateWorkout,
    scheduled: date,
    movement_names: dict[int, str],
) -> WorkoutInstance:
    instance = WorkoutInstance(
        week_index=week.week_index,
        day_index=workout.day_index,
        phase_index=week.phase.phase_index if week.phase else None,
        phase_week_index=week.phase_week_index,
        title_snapshot=workout.title,
        scheduled_date=scheduled,
        status="planned",
    )
    for block in sorted(workout.blocks, key=lambda b: b.sequence):
        block_instance = BlockInstance(
            sequence=block.sequence,
            block_name_snapshot=block.name,
            category_label_snapshot=block.category,
        )
        for item in sorted(block.items, key=lambda i: i.sequence):
            base_dose = dict(item.base_dose or {})
            planned = compute_dose(week.week_index, block.category, base_dose)
            validate_dose(base_dose, label=f"base dose of template item {item.id}")
            validate_dose(planned, label=f"planned dose of template item {item.id}")
            block_instance.items.append(
                BlockItemInstance(
                    sequence=item.sequence,
                    movement_id=item.movement_id,
                    movement_name_snapshot=movement_names[item.movement_id],
                    base_dose_snapshot=base_dose,
                    planned_dose=planned,
                    status="planned",
                )
            )
        instance.blocks.append(block_instance)
    return instance


def assign_program(
    s: Session,
    user_id: str,
    template_slug: str,
    start_date: date,
    weekday_offsets: Sequence[WeekdayEntry],
    *,
    timezone: Optional[str] = None,
    today: Optional[date] = None,
    notes: Optional[str] = None,
) -> str:
    """Expand the active template for ``template_slug`` into a new enrollment.

    ``weekday_offsets`` holds weekday names ("Mon") or 0..6 day offsets from
    ``start_date``. Returns the new enrollment id. Raises ``NotFoundError``,
    ``SchedulingConflict`` (before any write), ``ValidationError`` or
    ``TransientStoreError``.
    """
    settings = get_settings()
    today = today or date.today()
    with store_errors():
        template = resolve_active_template(s, template_slug)
        offsets = normalize_weekday_offsets(weekday_offsets, start_date)
        check_schedule_preconditions(
            offsets,
            template.workouts_per_week,
            start_date,
            today,
            settings.start_date_grace_days,
        )

        weeks = _load_template_weeks(s, template)
        movement_names = _movement_names(s, weeks)

        enrollment = Enrollment(
            user_id=str(user_id),
            program_id=template.id,
            program_slug_snapshot=template.slug,
            program_name_snapshot=template.name,
            template_version_snapshot=template.version,
            start_date=start_date,
            workouts_per_week=template.workouts_per_week,
            weekday_offsets=offsets,
            timezone=timezone or settings.default_timezone,
            status="active",
            notes=notes,
        )
        item_count = 0
        for week in weeks:
            dates = week_dates(start_date, week.week_index, offsets)
            workouts = sorted(week.workouts, key=lambda w: w.day_index)
            for scheduled, workout in zip(dates, workouts):
                instance = _build_workout(week, workout, scheduled, movement_names)
                item_count += sum(len(b.items) for b in instance.blocks)
                enrollment.workouts.append(instance)

        overlapping = s.execute(
            select(Enrollment.id).where(
                Enrollment.user_id == str(user_id),
                Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
            )
        ).first()
        if overlapping is not None:
            # TODO: decide between rejecting and archiving the prior enrollment once product settles it
            logger.warning(
                "enrollment_overlaps_active",
                extra={"ctx_user_id": str(user_id), "ctx_existing_enrollment_id": overlapping[0]},
            )

        s.add(enrollment)
        s.flush()

    logger.info(
        "program_assigned",
        extra={
            "ctx_enrollment_id": enrollment.id,
            "ctx_user_id": enrollment.user_id,
            "ctx_template": f"{template.slug}@{template.version}",
            "ctx_workouts": len(enrollment.workouts),
            "ctx_items": item_count,
        },
    )
    return enrollment.id


def assign_program_with_retry(
    user_id: str,
    template_slug: str,
    start_date: date,
    weekday_offsets: Sequence[WeekdayEntry],
    **kwargs,
) -> str:
    """Run ``assign_program`` in its own transaction, retrying on transient store errors."""
    attempts = max(1, min(10, int(get_settings().assignment_retry_attempts or 1)))
    for attempt in range(1, attempts + 1):
        try:
            with session_scope() as s:
                return assign_program(s, user_id, template_slug, start_date, weekday_offsets, **kwargs)
        except TransientStoreError:
            if attempt >= attempts:
                raise
            logger.warning(
                "assignment_retry",
                extra={"ctx_user_id": str(user_id), "ctx_attempt": attempt, "ctx_max_attempts": attempts},
            )
    raise RuntimeError("assignment retry loop exited unexpectedly")
