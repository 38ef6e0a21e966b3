"""Database seeder for the curated movement library and the foundation program.

Seeds equipment, movement patterns and library entries, runs catalog
maintenance so ``movements`` is populated, then builds the 12-week
``foundation-12wk`` template on top of those movements.
"""
from __future__ import annotations

from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import select

from core.db import session_scope
from core.logging_config import get_logger, setup_logging
from core.models import (
    Equipment,
    Movement,
    MovementContraindication,
    MovementLibraryEntry,
    MovementLibraryImpact,
    MovementLibraryTag,
    MovementPattern,
    ProgramTemplate,
    TemplateBlock,
    TemplateBlockItem,
    TemplatePhase,
    TemplateWeek,
    TemplateWorkout,
)
from core.services.catalog_sync import run_catalog_maintenance

logger = get_logger(__name__)

FOUNDATION_SLUG = "foundation-12wk"

SEED_EQUIPMENT = ["Bodyweight", "Dumbbell", "Kettlebell", "Barbell", "Resistance Band", "Mat"]

SEED_PATTERNS = [
    "Squat",
    "Hinge",
    "Lunge / Single Leg",
    "Push",
    "Pull",
    "Carry / Load Transport",
    "Rotation / Anti-Rotation",
    "Gait / Locomotion",
    "Mobility",
]

# (external_id, name, pattern, type, equipment, tags, contraindications, impacts)
SEED_LIBRARY: list[tuple[str, str, str, str, list[str], list[str], list[str], dict[str, float]]] = [
    ("mv-goblet-squat", "Goblet Squat", "Squat", "strength", ["Kettlebell"], ["lower", "bilateral"], ["knee pain"],
     {"recovery": 0.2, "resilience": 0.6, "results": 0.7}),
    ("mv-rdl", "Dumbbell Romanian Deadlift", "Hinge", "strength", ["Dumbbell"], ["lower", "posterior chain"], ["low back pain"],
     {"recovery": 0.2, "resilience": 0.7, "results": 0.7}),
    ("mv-split-squat", "Split Squat", "Lunge / Single Leg", "strength", ["Bodyweight"], ["lower", "unilateral"], [],
     {"recovery": 0.3, "resilience": 0.7, "results": 0.5}),
    ("mv-push-up", "Push-Up", "Push", "strength", ["Bodyweight"], ["upper"], ["wrist pain"],
     {"recovery": 0.1, "resilience": 0.5, "results": 0.6}),
    ("mv-band-row", "Band Row", "Pull", "strength", ["Resistance Band"], ["upper"], [],
     {"recovery": 0.3, "resilience": 0.6, "results": 0.5}),
    ("mv-farmer-carry", "Farmer Carry", "Carry / Load Transport", "strength", ["Kettlebell"], ["grip", "core"], [],
     {"recovery": 0.2, "resilience": 0.8, "results": 0.6}),
    ("mv-pallof-press", "Pallof Press", "Rotation / Anti-Rotation", "stability", ["Resistance Band"], ["core"], [],
     {"recovery": 0.4, "resilience": 0.7, "results": 0.3}),
    ("mv-brisk-walk", "Brisk Walk", "Gait / Locomotion", "endurance", ["Bodyweight"], ["aerobic", "low impact"], [],
     {"recovery": 0.7, "resilience": 0.4, "results": 0.3}),
    ("mv-easy-run", "Easy Run", "Gait / Locomotion", "endurance", ["Bodyweight"], ["aerobic"], ["shin splints"],
     {"recovery": 0.4, "resilience": 0.5, "results": 0.6}),
    ("mv-hip-flow", "Hip Mobility Flow", "Mobility", "mobility", ["Mat"], ["hips"], [],
     {"recovery": 0.8, "resilience": 0.5, "results": 0.1}),
    ("mv-thoracic-rotation", "Thoracic Rotation", "Mobility", "mobility", ["Mat"], ["spine"], [],
     {"recovery": 0.8, "resilience": 0.4, "results": 0.1}),
]

# Phase name -> (mobility movement, strength movements, aerobic movement)
FOUNDATION_PHASES: list[tuple[str, list[tuple[str, list[str], str]]]] = [
    ("Foundation", [
        ("Hip Mobility Flow", ["Goblet Squat", "Band Row"], "Brisk Walk"),
        ("Thoracic Rotation", ["Dumbbell Romanian Deadlift", "Push-Up"], "Brisk Walk"),
        ("Hip Mobility Flow", ["Split Squat", "Pallof Press"], "Brisk Walk"),
    ]),
    ("Build", [
        ("Hip Mobility Flow", ["Goblet Squat", "Farmer Carry"], "Easy Run"),
        ("Thoracic Rotation", ["Dumbbell Romanian Deadlift", "Band Row"], "Brisk Walk"),
        ("Hip Mobility Flow", ["Split Squat", "Push-Up"], "Easy Run"),
    ]),
    ("Consolidate", [
        ("Thoracic Rotation", ["Goblet Squat", "Push-Up"], "Easy Run"),
        ("Hip Mobility Flow", ["Dumbbell Romanian Deadlift", "Farmer Carry"], "Easy Run"),
        ("Thoracic Rotation", ["Split Squat", "Pallof Press"], "Easy Run"),
    ]),
]

WEEKS_PER_PHASE = 4

STRENGTH_BASE_DOSE: dict[str, dict[str, Any]] = {
    "Goblet Squat": {"sets": 3, "reps": 10, "load_kg": 16},
    "Dumbbell Romanian Deadlift": {"sets": 3, "reps": 10, "load_kg": 20},
    "Split Squat": {"sets": 3, "reps": 8},
    "Push-Up": {"sets": 3, "reps": 10},
    "Band Row": {"sets": 3, "reps": 12},
    "Farmer Carry": {"sets": 3, "distance_m": 40, "load_kg": 24},
    "Pallof Press": {"sets": 3, "reps": 10},
}


def run_migrations() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def seed_movement_library() -> None:
    with session_scope() as s:
        existing = s.execute(select(MovementLibraryEntry.id)).first()
        if existing:
            return
        equipment = {name: Equipment(name=name) for name in SEED_EQUIPMENT}
        patterns = {name: MovementPattern(name=name) for name in SEED_PATTERNS}
        s.add_all([*equipment.values(), *patterns.values()])
        s.flush()

        for external_id, name, pattern, movement_type, gear, tags, contraindications, impacts in SEED_LIBRARY:
            s.add(
                MovementLibraryEntry(
                    external_id=external_id,
                    name=name,
                    description=f"{name} ({pattern.lower()})",
                    pattern_id=patterns[pattern].id,
                    movement_type=movement_type,
                    required_equipment=sorted(equipment[g].id for g in gear),
                    tags=[MovementLibraryTag(tag=t) for t in tags],
                    contraindications=[MovementContraindication(condition=c) for c in contraindications],
                    impacts=[MovementLibraryImpact(module_key=k, score=v) for k, v in impacts.items()],
                )
            )
    logger.info("movement_library_seeded", extra={"ctx_entries": len(SEED_LIBRARY)})


def _workout_blocks(mobility: str, strength: list[str], aerobic: str, movement_ids: dict[str, int]) -> list[TemplateBlock]:
    return [
        TemplateBlock(
            sequence=1,
            name="Mobility Prep",
            category="mobility",
            items=[TemplateBlockItem(sequence=1, movement_id=movement_ids[mobility], base_dose={"time_s": 300})],
        ),
        TemplateBlock(
            sequence=2,
            name="Strength",
            category="strength",
            items=[
                TemplateBlockItem(sequence=i, movement_id=movement_ids[name], base_dose=dict(STRENGTH_BASE_DOSE[name]))
                for i, name in enumerate(strength, start=1)
            ],
        ),
        TemplateBlock(
            sequence=3,
            name="Aerobic Finisher",
            category="aerobic",
            items=[TemplateBlockItem(sequence=1, movement_id=movement_ids[aerobic], base_dose={"time_s": 900, "rpe": 5})],
        ),
    ]


def seed_foundation_program() -> None:
    with session_scope() as s:
        existing = s.execute(select(ProgramTemplate.id).where(ProgramTemplate.slug == FOUNDATION_SLUG)).first()
        if existing:
            return
        movement_ids = dict(s.execute(select(Movement.name, Movement.id)).all())

        program = ProgramTemplate(
            slug=FOUNDATION_SLUG,
            name="Foundation 12 Week",
            version=1,
            duration_weeks=len(FOUNDATION_PHASES) * WEEKS_PER_PHASE,
            workouts_per_week=3,
            is_active=True,
        )
        s.add(program)
        s.flush()

        week_index = 0
        for phase_index, (phase_name, sessions) in enumerate(FOUNDATION_PHASES, start=1):
            phase = TemplatePhase(program_id=program.id, phase_index=phase_index, week_count=WEEKS_PER_PHASE, name=phase_name)
            s.add(phase)
            s.flush()
            for phase_week_index in range(1, WEEKS_PER_PHASE + 1):
                week_index += 1
                week = TemplateWeek(
                    program_id=program.id,
                    phase_id=phase.id,
                    week_index=week_index,
                    phase_week_index=phase_week_index,
                )
                for day_index, (mobility, strength, aerobic) in enumerate(sessions):
                    week.workouts.append(
                        TemplateWorkout(
                            day_index=day_index,
                            title=f"{phase_name} {chr(ord('A') + day_index)}",
                            blocks=_workout_blocks(mobility, strength, aerobic, movement_ids),
                        )
                    )
                s.add(week)
    logger.info("foundation_program_seeded", extra={"ctx_slug": FOUNDATION_SLUG})


def main() -> None:
    setup_logging()
    run_migrations()
    seed_movement_library()
    run_catalog_maintenance()
    seed_foundation_program()
    print("Seeding complete")


if __name__ == "__main__":
    main()
