"""Telemetry listener that persists family and progress events to the audit trail."""

from __future__ import annotations

import logging
from typing import Set

from .db.session import session_scope
from .repositories.profiles import profiles
from .telemetry import TelemetryEvent, register_listener

logger = logging.getLogger(__name__)

_MONITORED_EVENTS: Set[str] = {
    "child_profile_created",
    "relationship_created",
    "relationship_deactivated",
    "session_recorded",
    "path_completed",
    "achievement_awarded",
}


def _persist_event(event: TelemetryEvent) -> None:
    if event.name not in _MONITORED_EVENTS:
        return
    profile_id = event.payload.get("profile_id")
    if not isinstance(profile_id, str) or not profile_id.strip():
        return
    try:
        with session_scope() as session:
            stored = profiles.record_telemetry_event(session, profile_id, event.name, event.payload)
        if not stored:
            logger.debug("Skipped telemetry event %s for unknown profile %s", event.name, profile_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to persist telemetry event for profile_id=%s", profile_id)


register_listener(_persist_event)

__all__ = ["_MONITORED_EVENTS"]
