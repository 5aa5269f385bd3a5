"""Delete timer events whose timer session no longer exists.

Usage examples::

    python -m scripts.cleanup_timer_events --dry-run
    python -m scripts.cleanup_timer_events --database-url sqlite:///./studydeck_local.db

Resets remove timer sessions together with their events, but rows written by
older deployments (or edited by hand) can leave events behind.  This script
removes them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path when executed as a module or script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from studydeck.crud import timer_crud  # noqa: E402
from studydeck.db import base  # noqa: E402,F401
from studydeck.db import session as session_module  # noqa: E402
from studydeck.models.timer.timer_session_model import TimerEvent, TimerSession  # noqa: E402

logger = logging.getLogger(__name__)


def count_orphaned_events(db) -> int:
    existing_ids = db.query(TimerSession.id).scalar_subquery()
    return (
        db.query(TimerEvent)
        .filter((TimerEvent.timer_session_id.is_(None)) | (~TimerEvent.timer_session_id.in_(existing_ids)))
        .count()
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Remove orphaned timer events")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="Override settings.DATABASE_URL (useful for targeting another environment).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many events would be deleted.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    if args.database_url:
        session_module.configure_database(args.database_url, allow_fallback=False)

    db = session_module.SessionLocal()
    try:
        if args.dry_run:
            count = count_orphaned_events(db)
            logger.info("%s orphaned timer events would be deleted.", count)
            return 0

        deleted = timer_crud.delete_orphaned_events(db)
        logger.info("Deleted %s orphaned timer events.", deleted)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
