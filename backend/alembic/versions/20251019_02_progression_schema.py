"""Exercise catalog, adventure paths, session ledger and progress projections."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251019_02_progression_schema"
down_revision = "20251019_01_family_schema"
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False)


def _profile_fk() -> sa.Column:
    return sa.Column(
        "profile_id",
        sa.String(length=36),
        sa.ForeignKey("profiles.profile_id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "exercises",
        sa.Column("exercise_id", sa.String(length=36), primary_key=True, nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(length=8), nullable=False, server_default="Easy"),
        sa.Column("adventure_points", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("estimated_minutes", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("difficulty IN ('Easy', 'Medium', 'Hard')", name=op.f("ck_exercises_difficulty_tier")),
        sa.CheckConstraint("adventure_points >= 0", name=op.f("ck_exercises_points_non_negative")),
    )

    op.create_table(
        "exercise_prerequisites",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "exercise_id",
            sa.String(length=36),
            sa.ForeignKey("exercises.exercise_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "required_exercise_id",
            sa.String(length=36),
            sa.ForeignKey("exercises.exercise_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("minimum_completions", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("minimum_rating", sa.Integer(), nullable=False, server_default="3"),
        _timestamp("created_at"),
        sa.UniqueConstraint("exercise_id", "required_exercise_id", name="uq_prerequisite_pair"),
        sa.CheckConstraint(
            "exercise_id <> required_exercise_id", name=op.f("ck_exercise_prerequisites_no_self_requirement")
        ),
        sa.CheckConstraint(
            "minimum_completions >= 1", name=op.f("ck_exercise_prerequisites_minimum_completions_positive")
        ),
        sa.CheckConstraint(
            "minimum_rating BETWEEN 1 AND 5", name=op.f("ck_exercise_prerequisites_minimum_rating_range")
        ),
    )
    op.create_index("ix_exercise_prerequisites_exercise_id", "exercise_prerequisites", ["exercise_id"])
    op.create_index(
        "ix_exercise_prerequisites_required_exercise_id", "exercise_prerequisites", ["required_exercise_id"]
    )

    op.create_table(
        "adventure_paths",
        sa.Column("path_id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("theme", sa.String(length=64), nullable=False),
        sa.Column("difficulty_level", sa.String(length=16), nullable=False, server_default="Beginner"),
        sa.Column("estimated_weeks", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("total_exercises", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("required_completed_paths", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reward_points", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "difficulty_level IN ('Beginner', 'Intermediate', 'Advanced')",
            name=op.f("ck_adventure_paths_difficulty_level"),
        ),
    )

    op.create_table(
        "path_exercises",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "path_id",
            sa.String(length=36),
            sa.ForeignKey("adventure_paths.path_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "exercise_id",
            sa.String(length=36),
            sa.ForeignKey("exercises.exercise_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False, server_default="1"),
        _timestamp("created_at"),
        sa.UniqueConstraint("path_id", "exercise_id", name="uq_path_exercise"),
        sa.UniqueConstraint("path_id", "sequence_order", name="uq_path_sequence"),
    )
    op.create_index("ix_path_exercises_exercise", "path_exercises", ["exercise_id"])

    op.create_table(
        "exercise_sessions",
        sa.Column("session_id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column(
            "exercise_id",
            sa.String(length=36),
            sa.ForeignKey("exercises.exercise_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "path_id",
            sa.String(length=36),
            sa.ForeignKey("adventure_paths.path_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("quality_rating", sa.Integer(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("quality_rating BETWEEN 1 AND 5", name=op.f("ck_exercise_sessions_quality_rating_range")),
    )
    op.create_index("ix_sessions_profile_completed", "exercise_sessions", ["profile_id", "completed_at"])
    op.create_index("ix_sessions_exercise", "exercise_sessions", ["exercise_id"])

    op.create_table(
        "path_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column(
            "path_id",
            sa.String(length=36),
            sa.ForeignKey("adventure_paths.path_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="locked"),
        sa.Column("current_week", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("exercises_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("profile_id", "path_id", name="uq_path_progress_profile_path"),
        sa.CheckConstraint(
            "status IN ('locked', 'available', 'in_progress', 'completed')",
            name=op.f("ck_path_progress_status_values"),
        ),
    )
    op.create_index("ix_path_progress_profile_status", "path_progress", ["profile_id", "status"])

    op.create_table(
        "aggregate_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "profile_id",
            sa.String(length=36),
            sa.ForeignKey("profiles.profile_id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_exercises_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_minutes", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("average_quality_rating", sa.Numeric(4, 2), nullable=False, server_default="0"),
        sa.Column("current_streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.Column("paths_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("achievements_earned", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "achievements",
        sa.Column("achievement_id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("achievement_type", sa.String(length=32), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("points_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint(
            "achievement_type IN ('total_points', 'total_exercises', 'streak_days', 'longest_streak', 'paths_completed')",
            name=op.f("ck_achievements_achievement_type_values"),
        ),
    )

    op.create_table(
        "profile_achievements",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column(
            "achievement_id",
            sa.String(length=36),
            sa.ForeignKey("achievements.achievement_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("exercise_sessions.session_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("earned_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("profile_id", "achievement_id", name="uq_profile_achievement"),
    )
    op.create_index("ix_profile_achievements_profile_id", "profile_achievements", ["profile_id"])


def downgrade() -> None:
    op.drop_index("ix_profile_achievements_profile_id", table_name="profile_achievements")
    op.drop_table("profile_achievements")
    op.drop_table("achievements")
    op.drop_table("aggregate_progress")
    op.drop_index("ix_path_progress_profile_status", table_name="path_progress")
    op.drop_table("path_progress")
    op.drop_index("ix_sessions_exercise", table_name="exercise_sessions")
    op.drop_index("ix_sessions_profile_completed", table_name="exercise_sessions")
    op.drop_table("exercise_sessions")
    op.drop_index("ix_path_exercises_exercise", table_name="path_exercises")
    op.drop_table("path_exercises")
    op.drop_table("adventure_paths")
    op.drop_index(
        "ix_exercise_prerequisites_required_exercise_id", table_name="exercise_prerequisites"
    )
    op.drop_index("ix_exercise_prerequisites_exercise_id", table_name="exercise_prerequisites")
    op.drop_table("exercise_prerequisites")
    op.drop_table("exercises")
