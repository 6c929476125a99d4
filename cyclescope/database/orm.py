"""SQLAlchemy ORM models for CycleScope.

One table, ``secular_analysis``: the flattened three-layer analysis, one
row per calendar date.

Usage:
    from cyclescope.database.orm import SecularAnalysis
    from cyclescope.database.connection import get_session

    async with get_session() as session:
        result = await session.execute(
            select(SecularAnalysis).order_by(SecularAnalysis.asof_date.desc()).limit(1)
        )
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

SCENARIO_COUNT = 4
SCENARIO_SUMMARY_COUNT = 4


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# SECULAR ANALYSIS
# =============================================================================


class SecularAnalysis(Base):
    """Daily secular-trend analysis, flattened from the layer1/2/3 payload."""
    __tablename__ = "secular_analysis"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asof_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)

    # Layer 1: secular trend
    secular_trend: Mapped[str | None] = mapped_column(Text)
    secular_regime_status: Mapped[str | None] = mapped_column(String(100))
    channel_position: Mapped[str | None] = mapped_column(String(100))
    recent_behavior_summary: Mapped[str | None] = mapped_column(Text)
    interpretation: Mapped[str | None] = mapped_column(Text)
    risk_bias: Mapped[str | None] = mapped_column(Text)
    summary_signal: Mapped[str | None] = mapped_column(Text)

    # Layer 2: scenario meta
    dominant_dynamics: Mapped[str | None] = mapped_column(Text)
    overall_bias: Mapped[str | None] = mapped_column(Text)
    secular_summary: Mapped[str | None] = mapped_column(Text)

    # Layer 2: scenarios 1-4
    scenario1_id: Mapped[str | None] = mapped_column(String(10))
    scenario1_name: Mapped[str | None] = mapped_column(String(100))
    scenario1_probability: Mapped[Decimal | None] = mapped_column(Numeric(5, 4))
    scenario1_path_summary: Mapped[str | None] = mapped_column(Text)
    scenario1_technical_logic: Mapped[str | None] = mapped_column(Text)
    scenario1_target_zone: Mapped[str | None] = mapped_column(Text)
    scenario1_expected_move_min: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario1_expected_move_max: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario1_risk_profile: Mapped[str | None] = mapped_column(Text)

    scenario2_id: Mapped[str | None] = mapped_column(String(10))
    scenario2_name: Mapped[str | None] = mapped_column(String(100))
    scenario2_probability: Mapped[Decimal | None] = mapped_column(Numeric(5, 4))
    scenario2_path_summary: Mapped[str | None] = mapped_column(Text)
    scenario2_technical_logic: Mapped[str | None] = mapped_column(Text)
    scenario2_target_zone: Mapped[str | None] = mapped_column(Text)
    scenario2_expected_move_min: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario2_expected_move_max: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario2_risk_profile: Mapped[str | None] = mapped_column(Text)

    scenario3_id: Mapped[str | None] = mapped_column(String(10))
    scenario3_name: Mapped[str | None] = mapped_column(String(100))
    scenario3_probability: Mapped[Decimal | None] = mapped_column(Numeric(5, 4))
    scenario3_path_summary: Mapped[str | None] = mapped_column(Text)
    scenario3_technical_logic: Mapped[str | None] = mapped_column(Text)
    scenario3_target_zone: Mapped[str | None] = mapped_column(Text)
    scenario3_expected_move_min: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario3_expected_move_max: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario3_risk_profile: Mapped[str | None] = mapped_column(Text)

    scenario4_id: Mapped[str | None] = mapped_column(String(10))
    scenario4_name: Mapped[str | None] = mapped_column(String(100))
    scenario4_probability: Mapped[Decimal | None] = mapped_column(Numeric(5, 4))
    scenario4_path_summary: Mapped[str | None] = mapped_column(Text)
    scenario4_technical_logic: Mapped[str | None] = mapped_column(Text)
    scenario4_target_zone: Mapped[str | None] = mapped_column(Text)
    scenario4_expected_move_min: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario4_expected_move_max: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    scenario4_risk_profile: Mapped[str | None] = mapped_column(Text)

    # Layer 3: consolidated summary
    scenario_summary_1: Mapped[str | None] = mapped_column(Text)
    scenario_summary_2: Mapped[str | None] = mapped_column(Text)
    scenario_summary_3: Mapped[str | None] = mapped_column(Text)
    scenario_summary_4: Mapped[str | None] = mapped_column(Text)
    primary_message: Mapped[str | None] = mapped_column(Text)

    # Files
    original_chart_url: Mapped[str | None] = mapped_column(Text)
    annotated_chart_url: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


Index("idx_secular_analysis_asof_date", SecularAnalysis.asof_date.desc())


# Columns written by the upsert (everything except identity and timestamps)
DATA_COLUMNS: tuple[str, ...] = tuple(
    c.name
    for c in SecularAnalysis.__table__.columns
    if c.name not in ("id", "asof_date", "created_at", "updated_at")
)
