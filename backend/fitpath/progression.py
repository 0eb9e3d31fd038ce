"""Pure progression rules: points, streaks, path progress and achievements.

Everything here is a function of its inputs so the repositories can recompute
derived state from the session ledger as often as they like and get the same
answer each time.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Collection, Dict, Iterable, List, Optional, Sequence

from .domain import (
    MAX_QUALITY_RATING,
    Achievement,
    AdventurePath,
    AggregateProgress,
    PathProgress,
    PathStatus,
)

_CENT = Decimal("0.01")


def _round_half_up(value: Decimal, exponent: Decimal = Decimal("1")) -> Decimal:
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def points_for(adventure_points: int, quality_rating: int) -> int:
    """Scale an exercise's points by the session rating (rating 5 earns full points)."""
    scaled = Decimal(adventure_points) * Decimal(quality_rating) / Decimal(MAX_QUALITY_RATING)
    return int(_round_half_up(scaled))


def next_streak(current: int, last_activity: Optional[date], activity_date: date) -> int:
    if last_activity is None or current <= 0:
        return 1
    gap = (activity_date - last_activity).days
    if gap <= 0:
        # same day, or a back-dated session
        return current
    if gap == 1:
        return current + 1
    return 1


def apply_session(
    aggregate: AggregateProgress,
    *,
    points: int,
    duration_minutes: float,
    quality_rating: int,
    activity_date: date,
) -> AggregateProgress:
    """Fold one session into the running totals."""
    previous_count = aggregate.total_exercises_completed
    count = previous_count + 1
    average = (
        Decimal(str(aggregate.average_quality_rating)) * previous_count + quality_rating
    ) / count
    streak = next_streak(aggregate.current_streak_days, aggregate.last_activity_date, activity_date)
    last_activity = aggregate.last_activity_date
    if last_activity is None or activity_date > last_activity:
        last_activity = activity_date
    total_minutes = Decimal(str(aggregate.total_minutes)) + Decimal(str(duration_minutes))
    return aggregate.model_copy(
        update={
            "total_points": aggregate.total_points + points,
            "total_exercises_completed": count,
            "total_minutes": float(_round_half_up(total_minutes, _CENT)),
            "average_quality_rating": float(_round_half_up(average, _CENT)),
            "current_streak_days": streak,
            "longest_streak_days": max(aggregate.longest_streak_days, streak),
            "last_activity_date": last_activity,
        }
    )


def initial_path_status(path: AdventurePath, completed_paths: int) -> PathStatus:
    return "available" if completed_paths >= path.required_completed_paths else "locked"


def progress_percentage(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    ratio = Decimal(completed) / Decimal(total) * 100
    return float(_round_half_up(ratio, _CENT))


def current_week(path: AdventurePath, completed_exercise_ids: Collection[str]) -> int:
    entries = sorted(path.exercises, key=lambda entry: entry.sequence_order)
    if not entries:
        return 1
    for entry in entries:
        if entry.exercise_id not in completed_exercise_ids:
            return entry.week_number
    return entries[-1].week_number


def recompute_path_progress(
    existing: Optional[PathProgress],
    path: AdventurePath,
    *,
    profile_id: str,
    completed_exercise_ids: Collection[str],
    points_earned: int,
    last_activity_at: Optional[datetime],
    completed_paths: int,
) -> PathProgress:
    """Derive a profile's progress on ``path`` from the set of exercises it has done.

    ``completed`` is terminal: once reached, neither the status nor the
    completion timestamp changes again. ``started_at`` is stamped on the first
    move out of locked/available and never overwritten.
    """
    members = {entry.exercise_id for entry in path.exercises}
    done = len(members.intersection(completed_exercise_ids))
    total = path.total_exercises
    percentage = progress_percentage(done, total)

    if existing is None:
        existing = PathProgress(
            profile_id=profile_id,
            path_id=path.path_id,
            status=initial_path_status(path, completed_paths),
        )

    status = existing.status
    started_at = existing.started_at
    completed_at = existing.completed_at
    if status != "completed":
        if percentage >= 100:
            status = "completed"
            completed_at = completed_at or last_activity_at
            started_at = started_at or last_activity_at
        elif percentage > 0:
            status = "in_progress"
            started_at = started_at or last_activity_at

    return existing.model_copy(
        update={
            "status": status,
            "exercises_completed": done,
            "total_exercises": total,
            "progress_percentage": percentage,
            "current_week": current_week(path, completed_exercise_ids),
            "points_earned": points_earned,
            "started_at": started_at,
            "completed_at": completed_at,
            "last_activity_at": last_activity_at or existing.last_activity_at,
        }
    )


def achievement_metrics(aggregate: AggregateProgress) -> Dict[str, int]:
    return {
        "total_points": aggregate.total_points,
        "total_exercises": aggregate.total_exercises_completed,
        "streak_days": aggregate.current_streak_days,
        "longest_streak": aggregate.longest_streak_days,
        "paths_completed": aggregate.paths_completed,
    }


def achievements_due(
    aggregate: AggregateProgress,
    achievements: Sequence[Achievement],
    earned_ids: Iterable[str],
) -> List[Achievement]:
    """Return achievements newly earned, applying bonus points until nothing else qualifies."""
    earned = set(earned_ids)
    awarded: List[Achievement] = []
    bonus = 0
    while True:
        metrics = achievement_metrics(aggregate)
        metrics["total_points"] += bonus
        batch = [
            achievement
            for achievement in achievements
            if achievement.is_active
            and achievement.achievement_id not in earned
            and metrics[achievement.achievement_type] >= achievement.threshold
        ]
        if not batch:
            return awarded
        for achievement in batch:
            earned.add(achievement.achievement_id)
            awarded.append(achievement)
            bonus += achievement.points_reward


__all__ = [
    "achievement_metrics",
    "achievements_due",
    "apply_session",
    "current_week",
    "initial_path_status",
    "next_streak",
    "points_for",
    "progress_percentage",
    "recompute_path_progress",
]
