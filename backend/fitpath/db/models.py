"""ORM models backing the family fitness persistence layer."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, new_id

JSONType = JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_privacy() -> dict:
    return {"data_sharing": False, "analytics": False}


class ProfileModel(TimestampMixin, Base):
    __tablename__ = "profiles"
    __table_args__ = (
        Index("ix_profiles_external_id", "external_id", unique=True),
        Index("ix_profiles_is_child", "is_child"),
        CheckConstraint(
            "(is_child AND external_id IS NULL) OR (NOT is_child AND external_id IS NOT NULL)",
            name="login_matches_kind",
        ),
    )

    profile_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_child: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    consent_given: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    consent_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    privacy_settings: Mapped[dict] = mapped_column(JSONType, default=_default_privacy, nullable=False)
    preferred_language: Mapped[str] = mapped_column(String(8), default="en", nullable=False)

    aggregate: Mapped["AggregateProgressModel"] = relationship(
        back_populates="profile", cascade="all, delete-orphan", uselist=False
    )


class RelationshipModel(Base):
    __tablename__ = "parent_child_relationships"
    __table_args__ = (
        UniqueConstraint("parent_id", "child_id", name="uq_relationship_pair"),
        CheckConstraint("parent_id <> child_id", name="distinct_members"),
        Index("ix_relationships_child_active", "child_id", "active"),
    )

    relationship_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    parent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False, index=True
    )
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(String(16), default="parent", nullable=False)
    consent_given: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    consent_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=_utcnow)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ExerciseModel(TimestampMixin, Base):
    __tablename__ = "exercises"
    __table_args__ = (
        CheckConstraint("difficulty IN ('Easy', 'Medium', 'Hard')", name="difficulty_tier"),
        CheckConstraint("adventure_points >= 0", name="points_non_negative"),
    )

    exercise_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    difficulty: Mapped[str] = mapped_column(String(8), default="Easy", nullable=False)
    adventure_points: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    estimated_minutes: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PrerequisiteModel(Base):
    __tablename__ = "exercise_prerequisites"
    __table_args__ = (
        UniqueConstraint("exercise_id", "required_exercise_id", name="uq_prerequisite_pair"),
        CheckConstraint("exercise_id <> required_exercise_id", name="no_self_requirement"),
        CheckConstraint("minimum_completions >= 1", name="minimum_completions_positive"),
        CheckConstraint("minimum_rating BETWEEN 1 AND 5", name="minimum_rating_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    exercise_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exercises.exercise_id", ondelete="CASCADE"), nullable=False, index=True
    )
    required_exercise_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exercises.exercise_id", ondelete="CASCADE"), nullable=False, index=True
    )
    minimum_completions: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    minimum_rating: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class AdventurePathModel(Base):
    __tablename__ = "adventure_paths"
    __table_args__ = (
        CheckConstraint(
            "difficulty_level IN ('Beginner', 'Intermediate', 'Advanced')", name="difficulty_level"
        ),
    )

    path_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    theme: Mapped[str] = mapped_column(String(64), nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(16), default="Beginner", nullable=False)
    estimated_weeks: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    total_exercises: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    required_completed_paths: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reward_points: Mapped[int] = mapped_column(Integer, default=200, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    entries: Mapped[list["PathExerciseModel"]] = relationship(
        back_populates="path",
        cascade="all, delete-orphan",
        order_by="PathExerciseModel.sequence_order",
    )


class PathExerciseModel(Base):
    __tablename__ = "path_exercises"
    __table_args__ = (
        UniqueConstraint("path_id", "exercise_id", name="uq_path_exercise"),
        UniqueConstraint("path_id", "sequence_order", name="uq_path_sequence"),
        Index("ix_path_exercises_exercise", "exercise_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    path_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("adventure_paths.path_id", ondelete="CASCADE"), nullable=False
    )
    exercise_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exercises.exercise_id", ondelete="CASCADE"), nullable=False
    )
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    path: Mapped[AdventurePathModel] = relationship(back_populates="entries")


class ExerciseSessionModel(Base):
    __tablename__ = "exercise_sessions"
    __table_args__ = (
        Index("ix_sessions_profile_completed", "profile_id", "completed_at"),
        Index("ix_sessions_exercise", "exercise_id"),
        CheckConstraint("quality_rating BETWEEN 1 AND 5", name="quality_rating_range"),
    )

    session_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False
    )
    exercise_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exercises.exercise_id", ondelete="CASCADE"), nullable=False
    )
    path_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("adventure_paths.path_id", ondelete="SET NULL"), nullable=True
    )
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    duration_minutes: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0, nullable=False)
    quality_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PathProgressModel(Base):
    __tablename__ = "path_progress"
    __table_args__ = (
        UniqueConstraint("profile_id", "path_id", name="uq_path_progress_profile_path"),
        Index("ix_path_progress_profile_status", "profile_id", "status"),
        CheckConstraint(
            "status IN ('locked', 'available', 'in_progress', 'completed')", name="status_values"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False
    )
    path_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("adventure_paths.path_id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), default="locked", nullable=False)
    current_week: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    exercises_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    progress_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class AggregateProgressModel(Base):
    __tablename__ = "aggregate_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False, unique=True
    )
    total_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_exercises_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_minutes: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    average_quality_rating: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=0, nullable=False)
    current_streak_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paths_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    achievements_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    profile: Mapped[ProfileModel] = relationship(back_populates="aggregate")


class AchievementModel(Base):
    __tablename__ = "achievements"
    __table_args__ = (
        CheckConstraint(
            "achievement_type IN ('total_points', 'total_exercises', 'streak_days', 'longest_streak', 'paths_completed')",
            name="achievement_type_values",
        ),
    )

    achievement_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    achievement_type: Mapped[str] = mapped_column(String(32), nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    points_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ProfileAchievementModel(Base):
    __tablename__ = "profile_achievements"
    __table_args__ = (
        UniqueConstraint("profile_id", "achievement_id", name="uq_profile_achievement"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False, index=True
    )
    achievement_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("achievements.achievement_id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("exercise_sessions.session_id", ondelete="SET NULL"), nullable=True
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class AuditEventModel(Base):
    __tablename__ = "audit_events"
    __table_args__ = (Index("ix_audit_events_profile_created", "profile_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.profile_id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    actor: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


__all__ = [
    "AchievementModel",
    "AdventurePathModel",
    "AggregateProgressModel",
    "AuditEventModel",
    "ExerciseModel",
    "ExerciseSessionModel",
    "PathExerciseModel",
    "PathProgressModel",
    "PrerequisiteModel",
    "ProfileAchievementModel",
    "ProfileModel",
    "RelationshipModel",
]
