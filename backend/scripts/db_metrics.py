"""Emit a one-off snapshot of database pool metrics and row counts."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from sqlalchemy import func, select, text

from fitpath.db.models import ExerciseSessionModel, ProfileModel, RelationshipModel
from fitpath.db.monitoring import get_pool_snapshot
from fitpath.db.session import get_engine, session_scope

LOGGER = logging.getLogger("fitpath.db_metrics")


def _row_counts() -> dict[str, int]:
    with session_scope(commit=False) as session:
        return {
            "profiles": session.execute(select(func.count(ProfileModel.profile_id))).scalar_one(),
            "active_relationships": session.execute(
                select(func.count(RelationshipModel.relationship_id)).where(RelationshipModel.active.is_(True))
            ).scalar_one(),
            "sessions": session.execute(select(func.count(ExerciseSessionModel.session_id))).scalar_one(),
        }


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "pool": get_pool_snapshot(engine),
            "rows": _row_counts(),
        }
        print(json.dumps(payload))
        return 0
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to collect database metrics: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
