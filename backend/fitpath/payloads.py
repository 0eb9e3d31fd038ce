"""Request and response payloads for the HTTP surface."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .db.base import new_id
from .domain import (
    MAX_QUALITY_RATING,
    MIN_QUALITY_RATING,
    AchievementType,
    AggregateProgress,
    Difficulty,
    EarnedAchievement,
    ExerciseSession,
    PathDifficulty,
    PathExercise,
    PathProgress,
    Profile,
    Relationship,
    RelationshipType,
)


class ParentRegistrationRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=128)
    date_of_birth: Optional[date] = None
    preferred_language: Optional[str] = Field(default=None, max_length=8)


class ChildProfileRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=128)
    date_of_birth: date
    preferred_language: Optional[str] = Field(default=None, max_length=8)

    @field_validator("display_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Display name cannot be blank.")
        return cleaned


class ChildProfilePayload(BaseModel):
    profile: Profile
    relationship: Relationship
    age: int


class RelationshipRequest(BaseModel):
    parent_id: str = Field(..., min_length=1)
    child_id: str = Field(..., min_length=1)
    relationship_type: RelationshipType = "parent"
    consent_given: bool = True


class AccessibleProfilesPayload(BaseModel):
    profile_ids: List[str] = Field(default_factory=list)


class SessionRequest(BaseModel):
    exercise_id: str = Field(..., min_length=1)
    quality_rating: int = Field(..., ge=MIN_QUALITY_RATING, le=MAX_QUALITY_RATING)
    duration_minutes: float = Field(default=0.0, ge=0.0, le=600.0)
    completed_at: Optional[datetime] = None
    path_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class SessionOutcomePayload(BaseModel):
    session: ExerciseSession
    aggregate: AggregateProgress
    path_progress: List[PathProgress] = Field(default_factory=list)
    achievements: List[EarnedAchievement] = Field(default_factory=list)
    completed_paths: List[str] = Field(default_factory=list)


class ExerciseRequest(BaseModel):
    exercise_id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    difficulty: Difficulty = "Easy"
    adventure_points: int = Field(default=10, ge=0)
    estimated_minutes: int = Field(default=5, ge=0)


class PrerequisiteRequest(BaseModel):
    exercise_id: str
    required_exercise_id: str
    minimum_completions: int = Field(default=1, ge=1)
    minimum_rating: int = Field(default=3, ge=MIN_QUALITY_RATING, le=MAX_QUALITY_RATING)


class PathRequest(BaseModel):
    path_id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    theme: str = Field(..., min_length=1, max_length=64)
    difficulty_level: PathDifficulty = "Beginner"
    estimated_weeks: int = Field(default=4, ge=1)
    required_completed_paths: int = Field(default=0, ge=0)
    reward_points: int = Field(default=200, ge=0)
    display_order: int = 0
    exercises: List[PathExercise] = Field(default_factory=list)


class AchievementRequest(BaseModel):
    achievement_id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    achievement_type: AchievementType
    threshold: int = Field(..., ge=0)
    points_reward: int = Field(default=0, ge=0)


__all__ = [
    "AccessibleProfilesPayload",
    "AchievementRequest",
    "ChildProfilePayload",
    "ChildProfileRequest",
    "ExerciseRequest",
    "ParentRegistrationRequest",
    "PathRequest",
    "PrerequisiteRequest",
    "RelationshipRequest",
    "SessionOutcomePayload",
    "SessionRequest",
]
