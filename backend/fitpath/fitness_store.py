"""Transaction boundaries for every family, catalog and progress operation.

Each public method opens exactly one ``session_scope``. Writes check access
with :func:`authorization.require` and raise :class:`AccessDenied`; reads
check with :func:`authorization.is_allowed` and come back empty instead.
Telemetry is emitted only after the transaction has committed.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import List, Optional

from . import authorization
from .authorization import CallerContext, Operation
from .clock import ensure_aware, local_date, utcnow
from .config import get_settings
from .db.session import session_scope
from .domain import (
    Achievement,
    AdventurePath,
    AggregateProgress,
    ChildCreation,
    EarnedAchievement,
    Exercise,
    ExerciseSession,
    ExerciseStats,
    PathExercise,
    PathProgress,
    Prerequisite,
    Profile,
    Relationship,
    SessionOutcome,
    UnlockReport,
)
from .errors import AccessDenied, UnknownExercise
from .repositories.catalog import catalog
from .repositories.profiles import profiles
from .repositories.progress import progress
from .telemetry import emit_event

logger = logging.getLogger(__name__)


# Session writes for one profile serialize on one of a fixed set of striped locks.
_LOCK_STRIPES = 64


class FitnessStore:
    def __init__(self) -> None:
        self._profile_locks: List[threading.Lock] = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    def _lock_for(self, profile_id: str) -> threading.Lock:
        return self._profile_locks[hash(profile_id) % len(self._profile_locks)]

    # -- identity -----------------------------------------------------------------

    def resolve_caller(self, external_id: str) -> CallerContext:
        with session_scope(commit=False) as session:
            return authorization.resolve_caller(session, external_id)

    def register_parent(
        self,
        external_id: str,
        display_name: str,
        *,
        date_of_birth: Optional[date] = None,
        language: Optional[str] = None,
    ) -> Profile:
        settings = get_settings()
        with session_scope() as session:
            profile = profiles.register_parent(
                session,
                external_id,
                display_name,
                date_of_birth=date_of_birth,
                language=language or settings.default_language,
            )
        emit_event("parent_registered", profile_id=profile.profile_id)
        return profile

    def get_profile(self, caller: CallerContext, profile_id: str) -> Optional[Profile]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return None
            return profiles.get(session, profile_id)

    def accessible_profile_ids(self, caller: CallerContext) -> List[str]:
        with session_scope(commit=False) as session:
            return authorization.accessible_profile_ids(session, caller)

    # -- family graph -------------------------------------------------------------

    def create_child_profile(
        self,
        caller: CallerContext,
        display_name: str,
        date_of_birth: date,
        *,
        as_of: Optional[date] = None,
        language: Optional[str] = None,
    ) -> ChildCreation:
        """Create a child, its consented link to the caller and a zeroed aggregate.

        The parent is always the caller; there is no way to name another one.
        """
        settings = get_settings()
        reference_day = as_of or local_date(utcnow(), settings.activity_timezone)
        with session_scope() as session:
            created = profiles.create_child_with_link(
                session,
                caller.profile_id,
                display_name,
                date_of_birth,
                as_of=reference_day,
                min_age=settings.child_min_age,
                max_age=settings.child_max_age,
                language=language or settings.default_language,
            )
        emit_event(
            "child_profile_created",
            profile_id=created.profile.profile_id,
            parent_id=caller.profile_id,
            relationship_id=created.relationship.relationship_id,
            age=created.age,
        )
        return created

    def list_children(self, caller: CallerContext) -> List[Profile]:
        if caller.is_child:
            return []
        with session_scope(commit=False) as session:
            return profiles.list_children(session, caller.profile_id)

    def create_relationship(
        self,
        caller: CallerContext,
        parent_id: str,
        child_id: str,
        *,
        consent: bool = True,
        relationship_type: str = "parent",
    ) -> Relationship:
        with session_scope() as session:
            authorization.require(session, caller, child_id, Operation.WRITE)
            relationship = profiles.create_relationship(
                session,
                parent_id,
                child_id,
                consent=consent,
                relationship_type=relationship_type,
                actor=caller.profile_id,
            )
        emit_event(
            "relationship_created",
            profile_id=child_id,
            parent_id=parent_id,
            relationship_id=relationship.relationship_id,
            relationship_type=relationship.relationship_type,
        )
        return relationship

    def deactivate_relationship(self, caller: CallerContext, relationship_id: str) -> Relationship:
        with session_scope() as session:
            existing = profiles.get_relationship(session, relationship_id)
            if existing is None or existing.parent_id != caller.profile_id:
                raise AccessDenied()
            was_active = existing.active
            relationship = profiles.deactivate_relationship(session, relationship_id, actor=caller.profile_id)
        if was_active:
            emit_event(
                "relationship_deactivated",
                profile_id=relationship.child_id,
                parent_id=relationship.parent_id,
                relationship_id=relationship.relationship_id,
            )
        return relationship

    # -- catalog ------------------------------------------------------------------

    def add_exercise(self, exercise: Exercise) -> Exercise:
        with session_scope() as session:
            return catalog.add_exercise(session, exercise)

    def add_prerequisite(self, prerequisite: Prerequisite) -> Prerequisite:
        with session_scope() as session:
            return catalog.add_prerequisite(session, prerequisite)

    def add_path(self, path: AdventurePath) -> AdventurePath:
        with session_scope() as session:
            created = catalog.add_path(session, path)
            progress.refresh_path_for_all(session, created)
            return created

    def add_path_exercise(self, path_id: str, entry: PathExercise) -> AdventurePath:
        with session_scope() as session:
            path = catalog.add_path_exercise(session, path_id, entry)
            progress.refresh_path_for_all(session, path)
            return path

    def remove_path_exercise(self, path_id: str, exercise_id: str) -> AdventurePath:
        with session_scope() as session:
            path = catalog.remove_path_exercise(session, path_id, exercise_id)
            progress.refresh_path_for_all(session, path)
            return path

    def add_achievement(self, achievement: Achievement) -> Achievement:
        with session_scope() as session:
            return catalog.add_achievement(session, achievement)

    def list_exercises(self, *, max_difficulty: Optional[str] = None) -> List[Exercise]:
        with session_scope(commit=False) as session:
            return catalog.list_exercises(session, max_difficulty=max_difficulty)

    def list_paths(self) -> List[AdventurePath]:
        with session_scope(commit=False) as session:
            return catalog.list_paths(session)

    def list_catalog_achievements(self) -> List[Achievement]:
        with session_scope(commit=False) as session:
            return catalog.list_achievements(session)

    # -- progress -----------------------------------------------------------------

    def unlock_report(self, caller: CallerContext, profile_id: str, exercise_id: str) -> Optional[UnlockReport]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return None
            if catalog.get_exercise(session, exercise_id) is None:
                raise UnknownExercise(f"Exercise '{exercise_id}' does not exist.")
            return progress.unlock_report(session, profile_id, exercise_id)

    def is_unlocked(self, caller: CallerContext, profile_id: str, exercise_id: str) -> bool:
        report = self.unlock_report(caller, profile_id, exercise_id)
        return bool(report and report.unlocked)

    def record_session(
        self,
        caller: CallerContext,
        profile_id: str,
        exercise_id: str,
        *,
        quality_rating: int,
        duration_minutes: float = 0.0,
        completed_at: Optional[datetime] = None,
        path_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SessionOutcome:
        settings = get_settings()
        moment = ensure_aware(completed_at) or utcnow()
        moment = moment.astimezone(timezone.utc)
        with self._lock_for(profile_id):
            with session_scope() as session:
                authorization.require(session, caller, profile_id, Operation.WRITE)
                exercise = catalog.get_exercise(session, exercise_id)
                if exercise is None or not exercise.is_active:
                    raise UnknownExercise(f"Exercise '{exercise_id}' does not exist.")
                outcome = progress.record_session(
                    session,
                    profile_id=profile_id,
                    exercise=exercise,
                    completed_at=moment,
                    activity_date=local_date(moment, settings.activity_timezone),
                    quality_rating=quality_rating,
                    duration_minutes=duration_minutes,
                    path_id=path_id,
                    notes=notes,
                )

        emit_event(
            "session_recorded",
            profile_id=profile_id,
            session_id=outcome.session.session_id,
            exercise_id=exercise_id,
            points_earned=outcome.session.points_earned,
            recorded_by=caller.profile_id,
        )
        for completed_path in outcome.completed_paths:
            emit_event("path_completed", profile_id=profile_id, path_id=completed_path)
        for earned in outcome.achievements:
            emit_event(
                "achievement_awarded",
                profile_id=profile_id,
                achievement_id=earned.achievement_id,
                points_reward=earned.points_reward,
            )
        return outcome

    def list_sessions(self, caller: CallerContext, profile_id: str, *, limit: int = 50) -> List[ExerciseSession]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return []
            return progress.list_sessions(session, profile_id, limit=limit)

    def get_aggregate(self, caller: CallerContext, profile_id: str) -> Optional[AggregateProgress]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return None
            return progress.get_aggregate(session, profile_id)

    def path_overview(self, caller: CallerContext, profile_id: str) -> List[PathProgress]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return []
            return progress.path_overview(session, profile_id, catalog.list_paths(session))

    def exercise_stats(self, caller: CallerContext, profile_id: str) -> List[ExerciseStats]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return []
            return progress.exercise_stats(session, profile_id)

    def list_achievements(self, caller: CallerContext, profile_id: str) -> List[EarnedAchievement]:
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return []
            return progress.list_earned_achievements(session, profile_id)

    def recent_events(self, caller: CallerContext, profile_id: str, *, limit: int = 20):
        with session_scope(commit=False) as session:
            if not authorization.is_allowed(session, caller, profile_id, Operation.READ):
                return []
            return profiles.recent_events(session, profile_id, limit=limit)


fitness_store = FitnessStore()

__all__ = ["FitnessStore", "fitness_store"]
