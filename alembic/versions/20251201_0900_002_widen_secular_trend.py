"""widen_secular_trend

Revision ID: 002_widen_secular_trend
Revises: 001_baseline
Create Date: 2025-12-01 09:00:00+00:00

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002_widen_secular_trend"
down_revision: Union[str, None] = "001_baseline"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Change secular_trend from VARCHAR(100) to TEXT."""
    op.alter_column(
        "secular_analysis",
        "secular_trend",
        type_=sa.Text(),
        existing_type=sa.String(100),
    )


def downgrade() -> None:
    op.alter_column(
        "secular_analysis",
        "secular_trend",
        type_=sa.String(100),
        existing_type=sa.Text(),
    )
