"""impact centers with monthly progress and work unit assignments

Revision ID: 202610180001
Revises: 202610010001
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180001"
down_revision = "202610010001"
branch_labels = None
depends_on = None


def _index(table: str, *columns: str) -> None:
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "impact_centers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("goal_id", sa.String(), nullable=True),
        sa.Column("target_description", sa.String(), nullable=False),
        sa.Column("completion_percentage", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("impact_centers", "code", "year", "goal_id", "created_at")

    op.create_table(
        "impact_center_progress",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("impact_center_id", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("completion_percentage", sa.Float(), nullable=False),
        sa.Column("achievement_notes", sa.String(), nullable=False),
        sa.Column("issues", sa.String(), nullable=False),
        sa.Column("reported_by", sa.String(), nullable=True),
        sa.Column("reported_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("impact_center_progress", "impact_center_id", "year", "reported_at")

    op.create_table(
        "impact_center_work_units",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("impact_center_id", sa.String(), nullable=False),
        sa.Column("work_unit_id", sa.String(), nullable=False),
        sa.Column("contribution", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("impact_center_work_units", "impact_center_id", "work_unit_id")


def downgrade() -> None:
    for table in ("impact_center_work_units", "impact_center_progress", "impact_centers"):
        op.drop_table(table)
