"""Engine, session and store-error plumbing shared by every service.

Services never commit: they run inside ``session_scope`` and wrap their reads
and writes in ``store_errors`` so driver exceptions reach callers as
``EngineError`` subclasses.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from core.config import get_settings
from core.errors import TransientStoreError, ValidationError
from core.models import Base

__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "store_errors",
    "reset_engine",
    "get_query_stats",
]

logger = logging.getLogger(__name__)

QUERY_SAMPLE_WINDOW = 1000


@dataclass
class QueryStats:
    total: int = 0
    slow: int = 0
    p50_ms: float = 0.0
    p95_ms: float = 0.0


_query_samples: deque[float] = deque(maxlen=QUERY_SAMPLE_WINDOW)


def _record_query(statement: str, elapsed_ms: float, slow_ms: float) -> None:
    _query_samples.append(elapsed_ms)
    if elapsed_ms > slow_ms:
        logger.warning(
            "slow_query",
            extra={"ctx_duration_ms": round(elapsed_ms, 2), "ctx_statement": statement.split("\n", 1)[0][:120]},
        )


@lru_cache(maxsize=1)
def get_engine():
    settings = get_settings()
    engine = create_engine(settings.database_url, pool_pre_ping=True)

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        elapsed = (time.perf_counter() - context._query_start_time) * 1000
        _record_query(statement, elapsed, settings.slow_query_ms)

    return engine


@lru_cache(maxsize=1)
def get_session_factory():
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False)


def reset_engine() -> None:
    """Drop the cached engine and session factory so the next call re-reads settings."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    _query_samples.clear()


@contextmanager
def session_scope() -> Iterator[Session]:
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def store_errors() -> Iterator[None]:
    """Translate driver failures: connectivity becomes transient, constraint hits become validation."""
    try:
        yield
    except OperationalError as exc:
        raise TransientStoreError(f"Store unavailable: {exc.orig or exc}") from exc
    except IntegrityError as exc:
        raise ValidationError(f"Constraint violated: {exc.orig or exc}") from exc


def get_query_stats() -> QueryStats:
    if not _query_samples:
        return QueryStats()
    slow_ms = get_settings().slow_query_ms
    ordered = sorted(_query_samples)
    return QueryStats(
        total=len(ordered),
        slow=sum(1 for ms in ordered if ms > slow_ms),
        p50_ms=round(ordered[int(len(ordered) * 0.5)], 2),
        p95_ms=round(ordered[int(len(ordered) * 0.95)], 2),
    )
