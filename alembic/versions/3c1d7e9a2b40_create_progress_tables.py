"""create progress and taxonomy tables

Revision ID: 3c1d7e9a2b40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1d7e9a2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "student_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("unit_id", sa.String(length=64), nullable=False),
        sa.Column(
            "chapters",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("unit_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "unit_congratulations_shown",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("created_at", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("student_id", "unit_id", name="uq_student_progress_unit"),
    )
    op.create_index("ix_student_progress_student_id", "student_progress", ["student_id"])
    op.create_index("ix_student_progress_unit_id", "student_progress", ["unit_id"])

    op.create_table(
        "subject_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("subject_id", sa.String(length=64), nullable=False),
        sa.Column("subject_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "subject_congratulations_shown",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.UniqueConstraint(
            "student_id", "subject_id", name="uq_subject_progress_subject"
        ),
    )
    op.create_index("ix_subject_progress_student_id", "subject_progress", ["student_id"])
    op.create_index("ix_subject_progress_subject_id", "subject_progress", ["subject_id"])

    op.create_table(
        "taxonomy_nodes",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("parent_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_taxonomy_nodes_kind", "taxonomy_nodes", ["kind"])
    op.create_index("ix_taxonomy_nodes_parent_id", "taxonomy_nodes", ["parent_id"])


def downgrade() -> None:
    op.drop_index("ix_taxonomy_nodes_parent_id", table_name="taxonomy_nodes")
    op.drop_index("ix_taxonomy_nodes_kind", table_name="taxonomy_nodes")
    op.drop_table("taxonomy_nodes")
    op.drop_index("ix_subject_progress_subject_id", table_name="subject_progress")
    op.drop_index("ix_subject_progress_student_id", table_name="subject_progress")
    op.drop_table("subject_progress")
    op.drop_index("ix_student_progress_unit_id", table_name="student_progress")
    op.drop_index("ix_student_progress_student_id", table_name="student_progress")
    op.drop_table("student_progress")
