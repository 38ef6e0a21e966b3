"""Two-phase movement catalog maintenance.

1. ``rebuild_derived_view`` projects the curated movement library (entries,
   patterns, tags, contraindications, impact scores) into the read-optimised
   ``movement_library_view`` table. It never touches ``movements``.
2. ``sync_to_operational_catalog`` merges that projection into ``movements``
   by natural key. It only inserts and updates. Movements that drop out of the
   library are flagged ``in_library = False`` and kept, because enrollments
   may still reference them.

Both are idempotent: running either twice in a row changes nothing the second
time (apart from ``refreshed_at`` on the projection).
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from core.db import session_scope, store_errors
from core.errors import ValidationError
from core.models import BlockItemInstance, Equipment, Movement, MovementLibraryEntry, MovementLibraryView
from core.services.validation import (
    normalize_id_set,
    validate_known_keys,
    validate_references,
    validate_score_range,
)

logger = logging.getLogger(__name__)

# Training modules a movement's impact vector may score (each in [0, 1]).
IMPACT_MODULES = ("recovery", "resilience", "results")

SPORTS = ("running", "cycling", "swimming", "hiking", "strength_sports", "crossfit", "team_sports", "racket_sports")

PATTERN_SPORT_BASE: dict[str, dict[str, float]] = {
    "gait / locomotion": {"running": 0.6, "hiking": 0.5, "team_sports": 0.4, "racket_sports": 0.3, "crossfit": 0.2},
    "carry / load transport": {"strength_sports": 0.5, "crossfit": 0.5, "hiking": 0.3, "team_sports": 0.2},
    "mixed modal conditioning": {"crossfit": 0.7, "team_sports": 0.4, "running": 0.3, "racket_sports": 0.3},
    "squat": {"strength_sports": 0.6, "crossfit": 0.5, "cycling": 0.4, "team_sports": 0.3, "hiking": 0.3},
    "hinge": {"strength_sports": 0.6, "crossfit": 0.5, "running": 0.3, "team_sports": 0.3},
    "lunge / single leg": {"running": 0.4, "hiking": 0.4, "team_sports": 0.4, "racket_sports": 0.4},
    "push": {"strength_sports": 0.5, "crossfit": 0.4, "swimming": 0.2, "racket_sports": 0.2},
    "pull": {"strength_sports": 0.5, "crossfit": 0.4, "swimming": 0.4},
    "rotation / anti-rotation": {"racket_sports": 0.5, "team_sports": 0.4, "swimming": 0.2},
    "mobility": {sport: 0.2 for sport in SPORTS},
}

# Intensity multipliers keyed by movement-name keyword; the first match wins.
NAME_INTENSITY: tuple[tuple[str, float], ...] = (
    ("sprint", 1.4),
    ("deadlift", 1.4),
    ("burpee", 1.3),
    ("jump", 1.3),
    ("run", 1.2),
    ("walk", 0.6),
)

TYPE_EMPHASIS: dict[str, dict[str, float]] = {
    "strength": {"strength_sports": 1.2},
    "endurance": {"running": 1.2, "cycling": 1.2, "swimming": 1.2, "hiking": 1.2},
    "mobility": {sport: 0.7 for sport in SPORTS},
}


@dataclass
class SyncReport:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    orphaned: int = 0

    @property
    def changed(self) -> int:
        return self.inserted + self.updated + self.orphaned

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def compute_default_sport_vector(pattern: Optional[str], movement_type: Optional[str], name: Optional[str]) -> dict[str, float]:
    """Derive a sport-transfer vector when the library does not supply one."""
    base = PATTERN_SPORT_BASE.get(str(pattern or "").strip().lower(), {})
    lowered = str(name or "").lower()
    intensity = next((mult for keyword, mult in NAME_INTENSITY if keyword in lowered), 1.0)
    emphasis = TYPE_EMPHASIS.get(str(movement_type or "").strip().lower(), {})
    vector: dict[str, float] = {}
    for sport in SPORTS:
        score = base.get(sport, 0.1) * intensity * emphasis.get(sport, 1.0)
        vector[sport] = round(min(1.0, max(0.0, score)), 2)
    return vector


def _project_entry(entry: MovementLibraryEntry) -> dict[str, Any]:
    pattern = entry.pattern.name if entry.pattern else None
    impact = {i.module_key: round(float(i.score), 4) for i in sorted(entry.impacts, key=lambda i: i.module_key)}
    return {
        "entry_id": entry.id,
        "external_id": entry.external_id,
        "name": entry.name,
        "description": entry.description or "",
        "pattern": pattern,
        "movement_type": entry.movement_type,
        "tags": sorted({t.tag for t in entry.tags}),
        "contraindications": [
            {"condition": c.condition, "severity": c.severity}
            for c in sorted(entry.contraindications, key=lambda c: (c.condition, c.severity))
        ],
        "required_equipment": normalize_id_set(entry.required_equipment),
        "module_impact_vector": impact,
        "sport_vector": dict(entry.sport_vector) if entry.sport_vector else compute_default_sport_vector(
            pattern, entry.movement_type, entry.name
        ),
    }


def project_library(s: Session) -> list[dict[str, Any]]:
    entries = (
        s.execute(
            select(MovementLibraryEntry)
            .where(MovementLibraryEntry.is_active.is_(True))
            .options(
                selectinload(MovementLibraryEntry.pattern),
                selectinload(MovementLibraryEntry.tags),
                selectinload(MovementLibraryEntry.contraindications),
                selectinload(MovementLibraryEntry.impacts),
            )
            .order_by(MovementLibraryEntry.id)
        )
        .scalars()
        .all()
    )
    return [_project_entry(e) for e in entries]


def rebuild_derived_view(s: Session, now: Optional[dt.datetime] = None) -> int:
    """Recompute ``movement_library_view`` from the curated library tables."""
    now = now or dt.datetime.utcnow()
    with store_errors():
        rows = project_library(s)
        existing = {v.entry_id: v for v in s.execute(select(MovementLibraryView)).scalars().all()}
        for row in rows:
            view = existing.pop(row["entry_id"], None)
            if view is None:
                s.add(MovementLibraryView(**row, refreshed_at=now))
                continue
            for key, value in row.items():
                setattr(view, key, value)
            view.refreshed_at = now
        for stale in existing.values():
            s.delete(stale)
        s.flush()
    logger.info("movement_library_view_rebuilt", extra={"ctx_rows": len(rows), "ctx_removed": len(existing)})
    return len(rows)


def _validate_projection_row(row: MovementLibraryView, equipment_ids: set[int]) -> None:
    label = f"movement {row.name!r}"
    validate_references(row.required_equipment or [], equipment_ids, label=f"{label} required_equipment")
    validate_known_keys(row.module_impact_vector or {}, IMPACT_MODULES, label=f"{label} impact vector")
    validate_score_range(row.module_impact_vector or {}, 0.0, 1.0, label=f"{label} impact vector")
    validate_score_range(row.sport_vector or {}, 0.0, 1.0, label=f"{label} sport vector")


def _movement_payload(row: MovementLibraryView) -> dict[str, Any]:
    return {
        "external_id": row.external_id,
        "name": row.name,
        "description": row.description or "",
        "pattern": row.pattern,
        "movement_type": row.movement_type,
        "tags": list(row.tags or []),
        "contraindications": list(row.contraindications or []),
        "required_equipment": normalize_id_set(row.required_equipment),
        "module_impact_vector": dict(row.module_impact_vector or {}),
        "sport_vector": dict(row.sport_vector or {}),
        "in_library": True,
    }


def _match_movements(
    rows: list[MovementLibraryView], movements: list[Movement]
) -> dict[int, Optional[Movement]]:
    """Pair each projection row with its existing movement, or None for an insert.

    Rows match by external id. A name match is only taken over when that
    movement has no external id of its own, so retained orphans are never
    repurposed. Raises ValidationError when a row's name is still held by a
    different movement that keeps it.
    """
    by_external = {m.external_id: m for m in movements if m.external_id}
    by_name = {m.name: m for m in movements}
    matches: dict[int, Optional[Movement]] = {}
    for row in rows:
        movement = by_external.get(row.external_id)
        if movement is None:
            candidate = by_name.get(row.name)
            if candidate is not None and candidate.external_id is None:
                movement = candidate
        matches[row.entry_id] = movement

    new_names = {matches[row.entry_id].id: row.name for row in rows if matches[row.entry_id] is not None}
    conflicts: list[str] = []
    for row in rows:
        holder = by_name.get(row.name)
        if holder is None or holder is matches[row.entry_id]:
            continue
        if new_names.get(holder.id, holder.name) == holder.name:
            conflicts.append(f"{row.external_id} -> {row.name!r} (held by movement {holder.id})")
    if conflicts:
        raise ValidationError(f"Movement name(s) already in use: {conflicts}")
    return matches


def sync_to_operational_catalog(s: Session, now: Optional[dt.datetime] = None) -> SyncReport:
    """Upsert the projection into ``movements`` by external id (falling back to unclaimed names)."""
    now = now or dt.datetime.utcnow()
    report = SyncReport()
    with store_errors():
        rows = s.execute(select(MovementLibraryView).order_by(MovementLibraryView.entry_id)).scalars().all()
        if not rows:
            logger.warning("catalog_sync_skipped_empty_projection")
            return report

        equipment_ids = set(s.execute(select(Equipment.id)).scalars().all())
        for row in rows:
            _validate_projection_row(row, equipment_ids)

        movements = s.execute(select(Movement)).scalars().all()
        matches = _match_movements(rows, movements)
        seen: set[int] = set()

        for row in rows:
            payload = _movement_payload(row)
            movement = matches[row.entry_id]
            if movement is None:
                s.add(Movement(**payload, synced_at=now, created_at=now, updated_at=now))
                report.inserted += 1
                continue
            seen.add(movement.id)
            changes = {k: v for k, v in payload.items() if getattr(movement, k) != v}
            if not changes:
                report.unchanged += 1
                continue
            for key, value in changes.items():
                setattr(movement, key, value)
            movement.updated_at = now
            movement.synced_at = now
            report.updated += 1

        orphan_ids: list[int] = []
        for movement in movements:
            if movement.id in seen or not movement.in_library:
                continue
            movement.in_library = False
            movement.updated_at = now
            orphan_ids.append(movement.id)
        report.orphaned = len(orphan_ids)

        s.flush()
        referenced = 0
        if orphan_ids:
            referenced = len(
                set(
                    s.execute(
                        select(BlockItemInstance.movement_id).where(BlockItemInstance.movement_id.in_(orphan_ids))
                    ).scalars().all()
                )
            )
    logger.info(
        "catalog_sync_completed",
        extra={**{f"ctx_{k}": v for k, v in report.as_dict().items()}, "ctx_orphaned_referenced": referenced},
    )
    return report


def run_catalog_maintenance() -> SyncReport:
    """Rebuild the projection, then merge it, each in its own transaction."""
    with session_scope() as s:
        rebuild_derived_view(s)
    with session_scope() as s:
        return sync_to_operational_catalog(s)
