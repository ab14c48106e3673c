"""create_profile_documents

Revision ID: 4c2d9e1a7b30
Revises:
Create Date: 2026-10-12 09:14:27.511392

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c2d9e1a7b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the profile_documents table."""
    op.create_table(
        "profile_documents",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("date_of_birth", sa.String(length=10), nullable=True),
        sa.Column(
            "has_provided_date_of_birth",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column("photo", sa.Text(), nullable=True),
        sa.Column("community_guess_total", sa.Integer(), server_default="0", nullable=False),
        sa.Column("community_guess_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "guess_history",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            server_default="[]",
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop the profile_documents table."""
    op.drop_table("profile_documents")
