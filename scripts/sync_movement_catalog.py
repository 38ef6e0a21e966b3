"""Rebuild the movement library projection and merge it into ``movements``.

Run on a schedule or after editing the curated library:

    python -m scripts.sync_movement_catalog
"""
from __future__ import annotations

from core.config import get_settings
from core.errors import EngineError
from core.logging_config import get_logger, setup_logging
from core.services.catalog_sync import run_catalog_maintenance

logger = get_logger(__name__)


def main() -> int:
    setup_logging(get_settings().log_level)
    try:
        report = run_catalog_maintenance()
    except EngineError as exc:
        logger.error("catalog_maintenance_failed", extra={"ctx_code": exc.code, "ctx_message": exc.message})
        return 1

    summary = " ".join(f"{k}={v}" for k, v in report.as_dict().items())
    print(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
