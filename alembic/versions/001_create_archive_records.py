"""Create archive records table.

Revision ID: 001_create_archive_records
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_create_archive_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the table linking archive ids to their source directories."""

    op.create_table(
        "archive_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_path", sa.Text(), nullable=False),
        sa.Column("archive_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_archive_records")),
        sa.UniqueConstraint("archive_id", name=op.f("uq_archive_records_archive_id")),
    )
    op.create_index(op.f("ix_archive_records_source_path"), "archive_records", ["source_path"], unique=False)
    op.create_index(op.f("ix_archive_records_created_at"), "archive_records", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop the archive records table."""

    op.drop_index(op.f("ix_archive_records_created_at"), table_name="archive_records")
    op.drop_index(op.f("ix_archive_records_source_path"), table_name="archive_records")
    op.drop_table("archive_records")
