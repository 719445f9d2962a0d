"""catalogue_schema

Create the catalogue, legacy feature set, assessment and audit tables.

Revision ID: a1c0f3e9d201
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c0f3e9d201"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "features" not in existing_tables:
        op.create_table(
            "features",
            sa.Column("unique_id", sa.String(length=40), nullable=False),
            sa.Column("component_code", sa.String(length=20), nullable=False),
            sa.Column("component_name", sa.String(length=200), nullable=False),
            sa.Column("feature_group_code", sa.String(length=3), nullable=False),
            sa.Column("feature_group_name", sa.String(length=200), nullable=True),
            sa.Column("feature_id", sa.String(length=3), nullable=False),
            sa.Column("feature_name", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("as_a", sa.String(length=500), nullable=True),
            sa.Column("i_want", sa.Text(), nullable=True),
            sa.Column("expected_outcomes", sa.Text(), nullable=True),
            sa.Column("service_type", sa.String(length=100), nullable=True),
            sa.PrimaryKeyConstraint("unique_id"),
            sa.UniqueConstraint(
                "component_code", "feature_group_code", "feature_id",
                name="uq_features_component_group_feature",
            ),
        )
        op.create_index("ix_features_component_code", "features", ["component_code"])
        op.create_index("idx_features_component_group", "features", ["component_code", "feature_group_code"])

    if "legacy_feature_sets" not in existing_tables:
        op.create_table(
            "legacy_feature_sets",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("features_json", sa.Text(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "assessments" not in existing_tables:
        op.create_table(
            "assessments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("code", sa.String(length=6), nullable=False),
            sa.Column("user_name", sa.String(length=200), nullable=True),
            sa.Column("service_name", sa.String(length=200), nullable=True),
            sa.Column("service_type", sa.String(length=100), nullable=True),
            sa.Column("legacy", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("legacy_feature_set_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["legacy_feature_set_id"], ["legacy_feature_sets.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )
        op.create_index("ix_assessments_legacy_feature_set_id", "assessments", ["legacy_feature_set_id"])

    if "assessment_responses" not in existing_tables:
        op.create_table(
            "assessment_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("assessment_id", sa.Integer(), nullable=False),
            sa.Column("component_code", sa.String(length=20), nullable=False),
            sa.Column("feature_id", sa.String(length=40), nullable=False),
            sa.Column("response", sa.String(length=20), nullable=False),
            sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("assessment_id", "feature_id", name="uq_assessment_response_feature"),
        )
        op.create_index(
            "idx_assessment_response_component", "assessment_responses", ["assessment_id", "component_code"],
        )

    if "audit_log" not in existing_tables:
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("action_type", sa.String(length=30), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=60), nullable=True),
            sa.Column("old_data", sa.Text(), nullable=True),
            sa.Column("new_data", sa.Text(), nullable=True),
            sa.Column("username", sa.String(length=150), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_log", ["entity_type", "entity_id"])
        op.create_index("idx_audit_action", "audit_log", ["action_type"])
        op.create_index("idx_audit_ts", "audit_log", ["timestamp"])


def downgrade():
    op.drop_table("audit_log")
    op.drop_table("assessment_responses")
    op.drop_table("assessments")
    op.drop_table("legacy_feature_sets")
    op.drop_table("features")
