"""create ingestion_processes table

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 09:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0003"
down_revision: Union[str, Sequence[str], None] = "20261019_0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ingestion_processes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="document_upload"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("parameters", sa.JSON(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("processed_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("failed_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "initiated_by_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_ingestion_processes_status", "ingestion_processes", ["status"])
    op.create_index("ix_ingestion_processes_type", "ingestion_processes", ["type"])
    op.create_index("ix_ingestion_processes_created_at", "ingestion_processes", ["created_at"])
    op.create_index(
        "ix_ingestion_processes_initiated_by_id", "ingestion_processes", ["initiated_by_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_ingestion_processes_initiated_by_id", table_name="ingestion_processes")
    op.drop_index("ix_ingestion_processes_created_at", table_name="ingestion_processes")
    op.drop_index("ix_ingestion_processes_type", table_name="ingestion_processes")
    op.drop_index("ix_ingestion_processes_status", table_name="ingestion_processes")
    op.drop_table("ingestion_processes")
