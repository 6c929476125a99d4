"""Secular analysis repository using SQLAlchemy ORM.

Flattens the nested layer1/layer2/layer3 payload onto ``secular_analysis``
and upserts it by ``asof_date``.

Usage:
    from cyclescope.repositories.analysis_orm import (
        save_analysis, get_latest_analysis, get_analysis_by_date
    )
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from cyclescope.core.dates import parse_partition_key
from cyclescope.core.exceptions import StorageError
from cyclescope.core.logging import get_logger
from cyclescope.database.connection import get_engine, get_session, ping
from cyclescope.database.orm import (
    DATA_COLUMNS,
    SCENARIO_COUNT,
    SCENARIO_SUMMARY_COUNT,
    SecularAnalysis,
)


logger = get_logger("repositories.analysis_orm")

PROBABILITY_QUANTUM = Decimal("0.0001")
MOVE_QUANTUM = Decimal("0.01")

LAYER1_FIELDS = (
    "secular_trend",
    "secular_regime_status",
    "channel_position",
    "recent_behavior_summary",
    "interpretation",
    "risk_bias",
    "summary_signal",
)

LAYER2_META_FIELDS = ("dominant_dynamics", "overall_bias", "secular_summary")

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _quantize(value: Any, quantum: Decimal) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value)).quantize(quantum)
    except (InvalidOperation, ValueError):
        logger.warning(f"Dropping non-numeric value {value!r}")
        return None


def _as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_partition_key(value)


def _scenario_columns(index: int, scenario: dict[str, Any] | None) -> dict[str, Any]:
    """Columns for scenario slot ``index`` (1-based); all None for an empty slot."""
    scenario = scenario or {}
    moves = scenario.get("expected_move_percent")
    if not isinstance(moves, (list, tuple)):
        moves = []
    prefix = f"scenario{index}"
    return {
        f"{prefix}_id": scenario.get("scenario_id"),
        f"{prefix}_name": scenario.get("name"),
        f"{prefix}_probability": _quantize(scenario.get("probability"), PROBABILITY_QUANTUM),
        f"{prefix}_path_summary": scenario.get("path_summary"),
        f"{prefix}_technical_logic": scenario.get("technical_logic"),
        f"{prefix}_target_zone": scenario.get("target_zone_description"),
        # Positional: [0] is min, [1] is max, never reordered
        f"{prefix}_expected_move_min": _quantize(moves[0] if len(moves) > 0 else None, MOVE_QUANTUM),
        f"{prefix}_expected_move_max": _quantize(moves[1] if len(moves) > 1 else None, MOVE_QUANTUM),
        f"{prefix}_risk_profile": scenario.get("risk_profile"),
    }


def map_analysis_to_row(analysis: dict[str, Any], asof_date: date | str) -> dict[str, Any]:
    """
    Flatten a three-layer analysis into ``secular_analysis`` column values.

    The scenario list (``layer2.scenario_analysis.scenarios``) is padded or
    truncated to four slots and the scenario
    summaries likewise. Missing fields become None. ``original_chart_url``
    and ``annotated_chart_url`` are read from the top level of ``analysis``.
    """
    layer1 = analysis.get("layer1") or {}
    layer2 = analysis.get("layer2") or {}
    layer3 = analysis.get("layer3") or {}
    meta = layer2.get("scenario_analysis") or {}

    row: dict[str, Any] = {"asof_date": _as_date(asof_date)}
    row.update({field: layer1.get(field) for field in LAYER1_FIELDS})
    row.update({field: meta.get(field) for field in LAYER2_META_FIELDS})

    scenarios = list(meta.get("scenarios") or [])[:SCENARIO_COUNT]
    scenarios += [None] * (SCENARIO_COUNT - len(scenarios))
    for index, scenario in enumerate(scenarios, start=1):
        row.update(_scenario_columns(index, scenario))

    summaries = list(layer3.get("scenario_summary") or [])[:SCENARIO_SUMMARY_COUNT]
    summaries += [None] * (SCENARIO_SUMMARY_COUNT - len(summaries))
    for index, summary in enumerate(summaries, start=1):
        row[f"scenario_summary_{index}"] = summary
    row["primary_message"] = layer3.get("primary_message")

    row["original_chart_url"] = analysis.get("original_chart_url")
    row["annotated_chart_url"] = analysis.get("annotated_chart_url")
    return row


def _row_to_dict(record: SecularAnalysis) -> dict[str, Any]:
    """Column name -> value; dates and datetimes as ISO strings."""
    result: dict[str, Any] = {}
    for column in SecularAnalysis.__table__.columns:
        value = getattr(record, column.key)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        result[column.name] = value
    return result


async def save_analysis(analysis: dict[str, Any], asof_date: date | str) -> dict[str, Any]:
    """
    Insert or update the analysis for ``asof_date``.

    On conflict every data column is overwritten and ``updated_at`` is
    refreshed; ``created_at`` keeps its first value. A null
    ``annotated_chart_url`` never replaces a stored one.

    Raises:
        StorageError: the statement failed (the transaction is rolled back)
    """
    row = map_analysis_to_row(analysis, asof_date)

    try:
        engine = await get_engine()
        insert = _INSERTS.get(engine.dialect.name)
        if insert is None:
            raise StorageError(f"Unsupported database dialect: {engine.dialect.name}")

        stmt = insert(SecularAnalysis).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["asof_date"],
            set_={
                **{col: stmt.excluded[col] for col in DATA_COLUMNS},
                # A failed re-annotation keeps the image already on disk.
                "annotated_chart_url": func.coalesce(
                    stmt.excluded.annotated_chart_url,
                    SecularAnalysis.__table__.c.annotated_chart_url,
                ),
                "updated_at": func.now(),
            },
        )

        async with get_session() as session:
            await session.execute(stmt)
            result = await session.execute(
                select(SecularAnalysis).where(SecularAnalysis.asof_date == row["asof_date"])
            )
            record = result.scalar_one()
            await session.commit()
            saved = _row_to_dict(record)
    except (SQLAlchemyError, RuntimeError, OSError) as e:
        logger.error(f"Failed to save analysis for {row['asof_date']}: {e}")
        raise StorageError(f"Failed to save analysis: {e}") from e

    logger.info(f"Analysis saved: id={saved['id']} asof_date={saved['asof_date']}")
    return saved


async def get_latest_analysis() -> dict[str, Any] | None:
    """Most recent analysis by ``asof_date``."""
    try:
        async with get_session() as session:
            result = await session.execute(
                select(SecularAnalysis).order_by(SecularAnalysis.asof_date.desc()).limit(1)
            )
            record = result.scalar_one_or_none()
            return _row_to_dict(record) if record else None
    except (SQLAlchemyError, RuntimeError, OSError) as e:
        raise StorageError(f"Failed to load latest analysis: {e}") from e


async def get_analysis_by_date(asof_date: date | str) -> dict[str, Any] | None:
    """Analysis for one date, or None."""
    target = _as_date(asof_date)
    try:
        async with get_session() as session:
            result = await session.execute(
                select(SecularAnalysis).where(SecularAnalysis.asof_date == target)
            )
            record = result.scalar_one_or_none()
            return _row_to_dict(record) if record else None
    except (SQLAlchemyError, RuntimeError, OSError) as e:
        raise StorageError(f"Failed to load analysis for {target}: {e}") from e


async def check_connection() -> bool:
    """True when the database answers ``SELECT 1``."""
    try:
        return await ping()
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False
