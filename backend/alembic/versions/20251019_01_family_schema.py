"""Profiles, parent-child relationships and the audit trail."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20251019_01_family_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("profile_id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=True),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("is_child", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("consent_given", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("consent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("privacy_settings", sa.JSON(), nullable=False),
        sa.Column("preferred_language", sa.String(length=8), nullable=False, server_default="en"),
        sa.CheckConstraint(
            "(is_child AND external_id IS NULL) OR (NOT is_child AND external_id IS NOT NULL)",
            name=op.f("ck_profiles_login_matches_kind"),
        ),
    )
    op.create_index("ix_profiles_external_id", "profiles", ["external_id"], unique=True)
    op.create_index("ix_profiles_is_child", "profiles", ["is_child"])

    op.create_table(
        "parent_child_relationships",
        sa.Column("relationship_id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "parent_id",
            sa.String(length=36),
            sa.ForeignKey("profiles.profile_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "child_id",
            sa.String(length=36),
            sa.ForeignKey("profiles.profile_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("relationship_type", sa.String(length=16), nullable=False, server_default="parent"),
        sa.Column("consent_given", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("consent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("parent_id", "child_id", name="uq_relationship_pair"),
        sa.CheckConstraint("parent_id <> child_id", name=op.f("ck_parent_child_relationships_distinct_members")),
    )
    op.create_index(
        "ix_parent_child_relationships_parent_id", "parent_child_relationships", ["parent_id"]
    )
    op.create_index(
        "ix_relationships_child_active", "parent_child_relationships", ["child_id", "active"]
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "profile_id",
            sa.String(length=36),
            sa.ForeignKey("profiles.profile_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_audit_events_profile_created", "audit_events", ["profile_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_profile_created", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_relationships_child_active", table_name="parent_child_relationships")
    op.drop_index("ix_parent_child_relationships_parent_id", table_name="parent_child_relationships")
    op.drop_table("parent_child_relationships")
    op.drop_index("ix_profiles_is_child", table_name="profiles")
    op.drop_index("ix_profiles_external_id", table_name="profiles")
    op.drop_table("profiles")
