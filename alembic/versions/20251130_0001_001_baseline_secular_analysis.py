"""Baseline: secular_analysis table.

Revision ID: 001_baseline
Revises:
Create Date: 2025-11-30

For databases created by the service's startup ``create_all``, run
'alembic stamp head' instead of upgrading.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_baseline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _scenario_columns(n: int) -> list[sa.Column]:
    return [
        sa.Column(f"scenario{n}_id", sa.String(10)),
        sa.Column(f"scenario{n}_name", sa.String(100)),
        sa.Column(f"scenario{n}_probability", sa.Numeric(5, 4)),
        sa.Column(f"scenario{n}_path_summary", sa.Text()),
        sa.Column(f"scenario{n}_technical_logic", sa.Text()),
        sa.Column(f"scenario{n}_target_zone", sa.Text()),
        sa.Column(f"scenario{n}_expected_move_min", sa.Numeric(6, 2)),
        sa.Column(f"scenario{n}_expected_move_max", sa.Numeric(6, 2)),
        sa.Column(f"scenario{n}_risk_profile", sa.Text()),
    ]


def upgrade() -> None:
    """Create secular_analysis with its unique date and DESC date index."""
    op.create_table(
        "secular_analysis",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("asof_date", sa.Date(), nullable=False),
        # Layer 1
        sa.Column("secular_trend", sa.String(100)),
        sa.Column("secular_regime_status", sa.String(100)),
        sa.Column("channel_position", sa.String(100)),
        sa.Column("recent_behavior_summary", sa.Text()),
        sa.Column("interpretation", sa.Text()),
        sa.Column("risk_bias", sa.Text()),
        sa.Column("summary_signal", sa.Text()),
        # Layer 2
        sa.Column("dominant_dynamics", sa.Text()),
        sa.Column("overall_bias", sa.Text()),
        sa.Column("secular_summary", sa.Text()),
        *_scenario_columns(1),
        *_scenario_columns(2),
        *_scenario_columns(3),
        *_scenario_columns(4),
        # Layer 3
        sa.Column("scenario_summary_1", sa.Text()),
        sa.Column("scenario_summary_2", sa.Text()),
        sa.Column("scenario_summary_3", sa.Text()),
        sa.Column("scenario_summary_4", sa.Text()),
        sa.Column("primary_message", sa.Text()),
        # Files
        sa.Column("original_chart_url", sa.Text()),
        sa.Column("annotated_chart_url", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_secular_analysis"),
        sa.UniqueConstraint("asof_date", name="uq_secular_analysis_asof_date"),
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_secular_analysis_asof_date "
        "ON secular_analysis (asof_date DESC)"
    )


def downgrade() -> None:
    op.drop_index("idx_secular_analysis_asof_date", table_name="secular_analysis")
    op.drop_table("secular_analysis")
