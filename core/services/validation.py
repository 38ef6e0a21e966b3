"""Write-time guards for reference-id arrays and score/dose objects.

These run synchronously before any instance or catalog row is persisted. They
never touch the store: callers load the catalog sets they need and pass them
in. A failure raises ``ValidationError`` and the enclosing transaction is
rolled back by ``session_scope``.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from numbers import Real
from typing import Any, Optional

from core.errors import ValidationError


def normalize_id_set(ids: Optional[Iterable[Optional[int]]]) -> list[int]:
    """Strip nulls, deduplicate and sort ascending."""
    if not ids:
        return []
    return sorted({int(i) for i in ids if i is not None})


def validate_references(ids: Iterable[int], catalog: Collection[int], label: str = "reference") -> None:
    missing = [i for i in normalize_id_set(ids) if i not in catalog]
    if missing:
        raise ValidationError(f"{label} contains unknown id(s): {missing}")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_score_range(
    scores: Mapping[str, Any],
    min_value: float,
    max_value: float,
    label: str = "score",
) -> None:
    bad: list[str] = []
    for key, value in scores.items():
        if not _is_number(value) or value != value:  # NaN fails the range too
            bad.append(f"{key}={value!r} (not a number)")
        elif value < min_value or value > max_value:
            bad.append(f"{key}={value}")
    if bad:
        raise ValidationError(f"{label} out of range [{min_value}, {max_value}]: {', '.join(bad)}")


def validate_known_keys(obj: Mapping[str, Any], known_keys: Collection[str], label: str = "object") -> None:
    unknown = sorted(str(k) for k in obj if k not in known_keys)
    if unknown:
        raise ValidationError(f"{label} has unknown key(s): {unknown}")
