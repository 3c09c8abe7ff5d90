"""create whitelist_entry table

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "whitelist_entry",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("qq_number", sa.String(32), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("minecraft_username", sa.String(16), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("whitelist_entry")
