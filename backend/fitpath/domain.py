"""Domain models shared by the repositories, stores and routes."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

Difficulty = Literal["Easy", "Medium", "Hard"]
PathDifficulty = Literal["Beginner", "Intermediate", "Advanced"]
PathStatus = Literal["locked", "available", "in_progress", "completed"]
RelationshipType = Literal["parent", "guardian"]
AchievementType = Literal["total_points", "total_exercises", "streak_days", "longest_streak", "paths_completed"]

DIFFICULTY_ORDER: Dict[str, int] = {"Easy": 0, "Medium": 1, "Hard": 2}
MIN_QUALITY_RATING = 1
MAX_QUALITY_RATING = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


def difficulty_rank(value: str) -> int:
    try:
        return DIFFICULTY_ORDER[value]
    except KeyError as exc:
        raise ValueError(f"Unknown difficulty tier: {value}") from exc


def default_privacy_settings() -> Dict[str, Any]:
    return {"data_sharing": False, "analytics": False}


class Profile(BaseModel):
    """Parent or child account record."""

    profile_id: str
    external_id: Optional[str] = None
    display_name: str
    date_of_birth: Optional[date] = None
    is_child: bool = False
    consent_given: bool = False
    consent_date: Optional[datetime] = None
    privacy_settings: Dict[str, Any] = Field(default_factory=default_privacy_settings)
    preferred_language: str = "en"
    created_at: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _login_matches_kind(self) -> "Profile":
        if self.is_child and self.external_id is not None:
            raise ValueError("Child profiles cannot carry an external login reference.")
        if not self.is_child and not self.external_id:
            raise ValueError("Parent profiles require an external login reference.")
        return self


class Relationship(BaseModel):
    """Consent-bearing edge granting a parent access to a child's data."""

    relationship_id: str
    parent_id: str
    child_id: str
    relationship_type: RelationshipType = "parent"
    consent_given: bool = True
    consent_date: Optional[datetime] = None
    active: bool = True
    created_at: datetime = Field(default_factory=_now)
    deactivated_at: Optional[datetime] = None


class ChildCreation(BaseModel):
    profile: Profile
    relationship: Relationship
    age: int


class Exercise(BaseModel):
    exercise_id: str
    name: str
    description: Optional[str] = None
    difficulty: Difficulty = "Easy"
    adventure_points: int = Field(default=10, ge=0)
    estimated_minutes: int = Field(default=5, ge=0)
    is_active: bool = True


class Prerequisite(BaseModel):
    """Gate requiring prior completions of another exercise."""

    exercise_id: str
    required_exercise_id: str
    minimum_completions: int = Field(default=1, ge=1)
    minimum_rating: int = Field(default=3, ge=MIN_QUALITY_RATING, le=MAX_QUALITY_RATING)


class PathExercise(BaseModel):
    exercise_id: str
    sequence_order: int
    week_number: int = Field(default=1, ge=1)


class AdventurePath(BaseModel):
    """Ordered grouping of exercises spanning several weeks."""

    path_id: str
    title: str
    description: Optional[str] = None
    theme: str
    difficulty_level: PathDifficulty = "Beginner"
    estimated_weeks: int = Field(default=4, ge=1)
    required_completed_paths: int = Field(default=0, ge=0)
    reward_points: int = Field(default=200, ge=0)
    total_exercises: int = 0
    is_active: bool = True
    display_order: int = 0
    exercises: List[PathExercise] = Field(default_factory=list)


class ExerciseSession(BaseModel):
    """Immutable record of one completed exercise."""

    model_config = {"frozen": True}

    session_id: str
    profile_id: str
    exercise_id: str
    path_id: Optional[str] = None
    completed_at: datetime
    duration_minutes: float = Field(default=0.0, ge=0.0)
    quality_rating: int = Field(ge=MIN_QUALITY_RATING, le=MAX_QUALITY_RATING)
    points_earned: int = 0
    notes: Optional[str] = None


class PathProgress(BaseModel):
    profile_id: str
    path_id: str
    status: PathStatus = "locked"
    current_week: int = 1
    exercises_completed: int = 0
    total_exercises: int = 0
    points_earned: int = 0
    progress_percentage: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


class AggregateProgress(BaseModel):
    profile_id: str
    total_points: int = 0
    total_exercises_completed: int = 0
    total_minutes: float = 0.0
    average_quality_rating: float = 0.0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    last_activity_date: Optional[date] = None
    paths_completed: int = 0
    achievements_earned: int = 0


class Achievement(BaseModel):
    achievement_id: str
    title: str
    description: Optional[str] = None
    achievement_type: AchievementType
    threshold: int = Field(ge=0)
    points_reward: int = Field(default=0, ge=0)
    is_active: bool = True


class EarnedAchievement(BaseModel):
    achievement_id: str
    title: str
    achievement_type: AchievementType
    points_reward: int
    earned_at: datetime
    session_id: Optional[str] = None


class UnlockRequirement(BaseModel):
    required_exercise_id: str
    minimum_completions: int
    minimum_rating: int
    qualifying_completions: int = 0
    satisfied: bool = False


class UnlockReport(BaseModel):
    exercise_id: str
    unlocked: bool
    requirements: List[UnlockRequirement] = Field(default_factory=list)


class ExerciseStats(BaseModel):
    exercise_id: str
    times_completed: int
    best_quality_rating: int
    total_minutes: float
    last_completed_at: Optional[datetime] = None


class SessionOutcome(BaseModel):
    """Everything a single session write changed, returned to the caller."""

    session: ExerciseSession
    aggregate: AggregateProgress
    path_progress: List[PathProgress] = Field(default_factory=list)
    achievements: List[EarnedAchievement] = Field(default_factory=list)
    completed_paths: List[str] = Field(default_factory=list)


__all__ = [
    "Achievement",
    "AdventurePath",
    "AggregateProgress",
    "ChildCreation",
    "DIFFICULTY_ORDER",
    "EarnedAchievement",
    "Exercise",
    "ExerciseSession",
    "ExerciseStats",
    "MAX_QUALITY_RATING",
    "MIN_QUALITY_RATING",
    "PathExercise",
    "PathProgress",
    "Prerequisite",
    "Profile",
    "Relationship",
    "SessionOutcome",
    "UnlockReport",
    "UnlockRequirement",
    "default_privacy_settings",
    "difficulty_rank",
]
