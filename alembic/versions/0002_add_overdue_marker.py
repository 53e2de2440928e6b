"""add overdue_notified_at to tickets

Revision ID: 0002_add_overdue_marker
Revises: 0001_initial_schema
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002_add_overdue_marker"
down_revision: Union[str, Sequence[str], None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Overdue sweep claims a ticket by stamping this column."""
    op.add_column(
        "tickets",
        sa.Column("overdue_notified_at", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("tickets", "overdue_notified_at")
