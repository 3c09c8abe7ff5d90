"""create verification_codes table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "verification_codes",
        sa.Column("email", sa.String(320), primary_key=True),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )


def downgrade():
    op.drop_table("verification_codes")
