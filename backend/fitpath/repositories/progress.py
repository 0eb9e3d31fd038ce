"""Progress ledger and the projections derived from it."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..clock import ensure_aware
from ..db.models import (
    AchievementModel,
    AggregateProgressModel,
    AuditEventModel,
    ExerciseSessionModel,
    PathProgressModel,
    ProfileAchievementModel,
)
from ..domain import (
    MAX_QUALITY_RATING,
    MIN_QUALITY_RATING,
    AdventurePath,
    AggregateProgress,
    EarnedAchievement,
    Exercise,
    ExerciseSession,
    ExerciseStats,
    PathProgress,
    SessionOutcome,
    UnlockReport,
)
from ..errors import (
    ExerciseLocked,
    InvalidDuration,
    InvalidRating,
    InvariantViolation,
    PathMembershipError,
    UnknownPath,
)
from ..prerequisites import evaluate_unlock
from ..progression import (
    achievements_due,
    apply_session,
    initial_path_status,
    points_for,
    recompute_path_progress,
)
from .catalog import catalog

logger = logging.getLogger(__name__)


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


class ProgressRepository:
    """Owns ``exercise_sessions`` and everything recomputed from it.

    ``record_session`` is the single write path: it appends the ledger entry
    and refreshes path progress, the aggregate and achievements inside the
    caller's transaction.
    """

    def ratings_by_exercise(
        self, session: Session, profile_id: str, exercise_ids: Iterable[str]
    ) -> Dict[str, List[int]]:
        wanted = list(set(exercise_ids))
        if not wanted:
            return {}
        stmt = select(ExerciseSessionModel.exercise_id, ExerciseSessionModel.quality_rating).where(
            ExerciseSessionModel.profile_id == profile_id,
            ExerciseSessionModel.exercise_id.in_(wanted),
        )
        ratings: Dict[str, List[int]] = defaultdict(list)
        for exercise_id, rating in session.execute(stmt):
            ratings[exercise_id].append(int(rating))
        return dict(ratings)

    def unlock_report(self, session: Session, profile_id: str, exercise_id: str) -> UnlockReport:
        edges = catalog.prerequisites_for(session, exercise_id)
        ratings = self.ratings_by_exercise(session, profile_id, [edge.required_exercise_id for edge in edges])
        return evaluate_unlock(exercise_id, edges, ratings)

    def lock_aggregate(self, session: Session, profile_id: str) -> AggregateProgressModel:
        stmt = (
            select(AggregateProgressModel)
            .where(AggregateProgressModel.profile_id == profile_id)
            .with_for_update()
        )
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            # Profiles created before aggregates existed get one on first write.
            model = AggregateProgressModel(profile_id=profile_id)
            session.add(model)
            session.flush()
        return model

    def record_session(
        self,
        session: Session,
        *,
        profile_id: str,
        exercise: Exercise,
        completed_at: datetime,
        activity_date: date,
        quality_rating: int,
        duration_minutes: float = 0.0,
        path_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SessionOutcome:
        if not MIN_QUALITY_RATING <= quality_rating <= MAX_QUALITY_RATING:
            raise InvalidRating(
                f"Quality rating must be between {MIN_QUALITY_RATING} and {MAX_QUALITY_RATING}."
            )
        if duration_minutes < 0:
            raise InvalidDuration("Duration cannot be negative.")
        report = self.unlock_report(session, profile_id, exercise.exercise_id)
        if not report.unlocked:
            missing = [item.required_exercise_id for item in report.requirements if not item.satisfied]
            raise ExerciseLocked(
                f"Exercise '{exercise.exercise_id}' is locked; complete {', '.join(missing)} first."
            )
        if path_id is not None:
            path = catalog.get_path(session, path_id)
            if path is None:
                raise UnknownPath(f"Adventure path '{path_id}' does not exist.")
            if exercise.exercise_id not in {entry.exercise_id for entry in path.exercises}:
                raise PathMembershipError(
                    f"Exercise '{exercise.exercise_id}' is not part of path '{path_id}'."
                )

        aggregate_model = self.lock_aggregate(session, profile_id)
        points = points_for(exercise.adventure_points, quality_rating)
        entry = ExerciseSessionModel(
            profile_id=profile_id,
            exercise_id=exercise.exercise_id,
            path_id=path_id,
            completed_at=completed_at,
            duration_minutes=Decimal(str(duration_minutes)),
            quality_rating=quality_rating,
            points_earned=points,
            notes=notes,
        )
        session.add(entry)
        session.flush()

        completed_before = self.completed_path_count(session, profile_id)
        touched: List[PathProgress] = []
        newly_completed: List[str] = []
        for path in catalog.paths_containing(session, exercise.exercise_id):
            previous = self._get_path_progress_model(session, profile_id, path.path_id)
            was_completed = previous is not None and previous.status == "completed"
            updated = self.recompute_path(session, profile_id, path, completed_paths=completed_before)
            if updated.status == "completed" and not was_completed:
                newly_completed.append(path.path_id)
            touched.append(updated)
        completed_after = self.completed_path_count(session, profile_id)

        aggregate = apply_session(
            self._aggregate_to_domain(aggregate_model),
            points=points,
            duration_minutes=duration_minutes,
            quality_rating=quality_rating,
            activity_date=activity_date,
        ).model_copy(update={"paths_completed": completed_after})

        earned_ids = self._earned_achievement_ids(session, profile_id)
        due = achievements_due(aggregate, self._active_achievements(session), earned_ids)
        awarded: List[EarnedAchievement] = []
        for achievement in due:
            link = ProfileAchievementModel(
                profile_id=profile_id,
                achievement_id=achievement.achievement_id,
                session_id=entry.session_id,
                earned_at=completed_at,
            )
            session.add(link)
            awarded.append(
                EarnedAchievement(
                    achievement_id=achievement.achievement_id,
                    title=achievement.title,
                    achievement_type=achievement.achievement_type,
                    points_reward=achievement.points_reward,
                    earned_at=completed_at,
                    session_id=entry.session_id,
                )
            )
        if awarded:
            aggregate = aggregate.model_copy(
                update={
                    "total_points": aggregate.total_points + sum(item.points_reward for item in awarded),
                    "achievements_earned": len(earned_ids) + len(awarded),
                }
            )

        self._apply_aggregate(aggregate_model, aggregate)
        session.flush()
        self._record_audit(
            session,
            profile_id,
            "session_insert",
            {
                "session_id": entry.session_id,
                "exercise_id": exercise.exercise_id,
                "points": points,
                "achievements": [item.achievement_id for item in awarded],
            },
        )
        return SessionOutcome(
            session=self._session_to_domain(entry),
            aggregate=aggregate,
            path_progress=touched,
            achievements=awarded,
            completed_paths=newly_completed,
        )

    def recompute_path(
        self,
        session: Session,
        profile_id: str,
        path: AdventurePath,
        *,
        completed_paths: Optional[int] = None,
    ) -> PathProgress:
        """Rebuild one PathProgress row from the ledger. Running it twice changes nothing."""
        members = [entry.exercise_id for entry in path.exercises]
        done: List[str] = []
        points = 0
        last_activity: Optional[datetime] = None
        if members:
            stmt = (
                select(
                    ExerciseSessionModel.exercise_id,
                    func.sum(ExerciseSessionModel.points_earned),
                    func.max(ExerciseSessionModel.completed_at),
                )
                .where(
                    ExerciseSessionModel.profile_id == profile_id,
                    ExerciseSessionModel.exercise_id.in_(members),
                )
                .group_by(ExerciseSessionModel.exercise_id)
            )
            for exercise_id, point_sum, latest in session.execute(stmt):
                done.append(exercise_id)
                points += int(point_sum or 0)
                latest = ensure_aware(latest)
                if latest is not None and (last_activity is None or latest > last_activity):
                    last_activity = latest

        model = self._get_path_progress_model(session, profile_id, path.path_id)
        existing = self._path_progress_to_domain(model, path) if model else None
        if completed_paths is None:
            completed_paths = self.completed_path_count(session, profile_id)
        updated = recompute_path_progress(
            existing,
            path,
            profile_id=profile_id,
            completed_exercise_ids=done,
            points_earned=points,
            last_activity_at=last_activity,
            completed_paths=completed_paths,
        )
        if existing is not None and existing.status == "completed" and updated.status != "completed":
            raise InvariantViolation(f"Path '{path.path_id}' would revert from completed.")

        if model is None:
            model = PathProgressModel(profile_id=profile_id, path_id=path.path_id)
            session.add(model)
        model.status = updated.status
        model.current_week = updated.current_week
        model.exercises_completed = updated.exercises_completed
        model.points_earned = updated.points_earned
        model.progress_percentage = Decimal(str(updated.progress_percentage))
        model.started_at = updated.started_at
        model.completed_at = updated.completed_at
        model.last_activity_at = updated.last_activity_at
        session.flush()
        return updated

    def refresh_path_for_all(self, session: Session, path: AdventurePath) -> int:
        """Recompute ``path`` for every profile it can affect after a membership change.

        That is every profile with a progress row on the path plus every
        profile whose ledger already holds a session on one of its exercises.
        """
        stmt = select(PathProgressModel.profile_id).where(PathProgressModel.path_id == path.path_id)
        profile_ids = set(session.execute(stmt).scalars())
        members = [entry.exercise_id for entry in path.exercises]
        if members:
            ledger_stmt = (
                select(ExerciseSessionModel.profile_id)
                .where(ExerciseSessionModel.exercise_id.in_(members))
                .distinct()
            )
            profile_ids.update(session.execute(ledger_stmt).scalars())
        for profile_id in sorted(profile_ids):
            self.recompute_path(session, profile_id, path)
            aggregate_model = self.lock_aggregate(session, profile_id)
            aggregate_model.paths_completed = self.completed_path_count(session, profile_id)
        session.flush()
        if profile_ids:
            logger.info("Recomputed %d progress rows for path %s", len(profile_ids), path.path_id)
        return len(profile_ids)

    def completed_path_count(self, session: Session, profile_id: str) -> int:
        stmt = select(func.count(PathProgressModel.id)).where(
            PathProgressModel.profile_id == profile_id,
            PathProgressModel.status == "completed",
        )
        return int(session.execute(stmt).scalar_one())

    def path_overview(
        self, session: Session, profile_id: str, paths: Sequence[AdventurePath]
    ) -> List[PathProgress]:
        stmt = select(PathProgressModel).where(PathProgressModel.profile_id == profile_id)
        rows = {model.path_id: model for model in session.execute(stmt).scalars()}
        completed = sum(1 for model in rows.values() if model.status == "completed")
        overview: List[PathProgress] = []
        for path in paths:
            model = rows.get(path.path_id)
            if model is not None:
                overview.append(self._path_progress_to_domain(model, path))
                continue
            overview.append(
                PathProgress(
                    profile_id=profile_id,
                    path_id=path.path_id,
                    status=initial_path_status(path, completed),
                    total_exercises=path.total_exercises,
                )
            )
        return overview

    def get_aggregate(self, session: Session, profile_id: str) -> AggregateProgress:
        stmt = select(AggregateProgressModel).where(AggregateProgressModel.profile_id == profile_id)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            return AggregateProgress(profile_id=profile_id)
        return self._aggregate_to_domain(model)

    def list_sessions(self, session: Session, profile_id: str, *, limit: int = 50) -> List[ExerciseSession]:
        stmt = (
            select(ExerciseSessionModel)
            .where(ExerciseSessionModel.profile_id == profile_id)
            .order_by(ExerciseSessionModel.completed_at.desc(), ExerciseSessionModel.created_at.desc())
            .limit(max(1, limit))
        )
        return [self._session_to_domain(model) for model in session.execute(stmt).scalars()]

    def exercise_stats(self, session: Session, profile_id: str) -> List[ExerciseStats]:
        stmt = (
            select(
                ExerciseSessionModel.exercise_id,
                func.count(ExerciseSessionModel.session_id),
                func.max(ExerciseSessionModel.quality_rating),
                func.sum(ExerciseSessionModel.duration_minutes),
                func.max(ExerciseSessionModel.completed_at),
            )
            .where(ExerciseSessionModel.profile_id == profile_id)
            .group_by(ExerciseSessionModel.exercise_id)
        )
        stats = [
            ExerciseStats(
                exercise_id=exercise_id,
                times_completed=int(count),
                best_quality_rating=int(best or 0),
                total_minutes=round(_as_float(minutes), 2),
                last_completed_at=ensure_aware(latest),
            )
            for exercise_id, count, best, minutes, latest in session.execute(stmt)
        ]
        stats.sort(key=lambda item: (-item.times_completed, item.exercise_id))
        return stats

    def list_earned_achievements(self, session: Session, profile_id: str) -> List[EarnedAchievement]:
        stmt = (
            select(ProfileAchievementModel, AchievementModel)
            .join(AchievementModel, AchievementModel.achievement_id == ProfileAchievementModel.achievement_id)
            .where(ProfileAchievementModel.profile_id == profile_id)
            .order_by(ProfileAchievementModel.earned_at.asc())
        )
        return [
            EarnedAchievement(
                achievement_id=achievement.achievement_id,
                title=achievement.title,
                achievement_type=achievement.achievement_type,  # type: ignore[arg-type]
                points_reward=achievement.points_reward,
                earned_at=ensure_aware(link.earned_at),  # type: ignore[arg-type]
                session_id=link.session_id,
            )
            for link, achievement in session.execute(stmt)
        ]

    def _earned_achievement_ids(self, session: Session, profile_id: str) -> List[str]:
        stmt = select(ProfileAchievementModel.achievement_id).where(
            ProfileAchievementModel.profile_id == profile_id
        )
        return list(session.execute(stmt).scalars())

    def _active_achievements(self, session: Session):
        return catalog.list_achievements(session)

    def _get_path_progress_model(
        self, session: Session, profile_id: str, path_id: str
    ) -> Optional[PathProgressModel]:
        stmt = select(PathProgressModel).where(
            PathProgressModel.profile_id == profile_id,
            PathProgressModel.path_id == path_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _apply_aggregate(model: AggregateProgressModel, aggregate: AggregateProgress) -> None:
        model.total_points = aggregate.total_points
        model.total_exercises_completed = aggregate.total_exercises_completed
        model.total_minutes = Decimal(str(aggregate.total_minutes))
        model.average_quality_rating = Decimal(str(aggregate.average_quality_rating))
        model.current_streak_days = aggregate.current_streak_days
        model.longest_streak_days = aggregate.longest_streak_days
        model.last_activity_date = aggregate.last_activity_date
        model.paths_completed = aggregate.paths_completed
        model.achievements_earned = aggregate.achievements_earned

    @staticmethod
    def _aggregate_to_domain(model: AggregateProgressModel) -> AggregateProgress:
        return AggregateProgress(
            profile_id=model.profile_id,
            total_points=model.total_points or 0,
            total_exercises_completed=model.total_exercises_completed or 0,
            total_minutes=_as_float(model.total_minutes),
            average_quality_rating=_as_float(model.average_quality_rating),
            current_streak_days=model.current_streak_days or 0,
            longest_streak_days=model.longest_streak_days or 0,
            last_activity_date=model.last_activity_date,
            paths_completed=model.paths_completed or 0,
            achievements_earned=model.achievements_earned or 0,
        )

    @staticmethod
    def _path_progress_to_domain(model: PathProgressModel, path: AdventurePath) -> PathProgress:
        return PathProgress(
            profile_id=model.profile_id,
            path_id=model.path_id,
            status=model.status,  # type: ignore[arg-type]
            current_week=model.current_week,
            exercises_completed=model.exercises_completed,
            total_exercises=path.total_exercises,
            points_earned=model.points_earned,
            progress_percentage=_as_float(model.progress_percentage),
            started_at=ensure_aware(model.started_at),
            completed_at=ensure_aware(model.completed_at),
            last_activity_at=ensure_aware(model.last_activity_at),
        )

    @staticmethod
    def _session_to_domain(model: ExerciseSessionModel) -> ExerciseSession:
        return ExerciseSession(
            session_id=model.session_id,
            profile_id=model.profile_id,
            exercise_id=model.exercise_id,
            path_id=model.path_id,
            completed_at=ensure_aware(model.completed_at),  # type: ignore[arg-type]
            duration_minutes=_as_float(model.duration_minutes),
            quality_rating=model.quality_rating,
            points_earned=model.points_earned,
            notes=model.notes,
        )

    def _record_audit(self, session: Session, profile_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        session.add(
            AuditEventModel(
                profile_id=profile_id,
                event_type=event_type,
                payload=payload,
                actor="system",
            )
        )


progress = ProgressRepository()

__all__ = ["ProgressRepository", "progress"]
