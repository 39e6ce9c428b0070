"""Snapshot reads for the pipeline and the single bulk write of derived fields."""

import logging
from datetime import date

from sqlalchemy import select, func, update

from setup_screener.db import get_session
from setup_screener.models.snapshot import Snapshot
from setup_screener.models.ticker import Ticker
from setup_screener.models.signals import IndicatorSnapshot, TickerContext, to_json

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The bulk write of a pipeline run failed and was rolled back."""


def latest_snapshot_date(before: date | None = None) -> date | None:
    """Most recent snapshot date, optionally strictly before ``before``."""
    session = get_session()
    try:
        stmt = select(func.max(Snapshot.date))
        if before is not None:
            stmt = stmt.where(Snapshot.date < before)
        return session.execute(stmt).scalar()
    finally:
        session.close()


def _inactive_symbols(session) -> set[str]:
    rows = session.execute(select(Ticker.symbol).where(Ticker.is_active == False)).all()  # noqa: E712
    return {r[0] for r in rows}


def load_snapshots(on: date) -> list[IndicatorSnapshot]:
    """All snapshots for a date, skipping deactivated tickers."""
    session = get_session()
    try:
        inactive = _inactive_symbols(session)
        rows = session.execute(
            select(Snapshot).where(Snapshot.date == on).order_by(Snapshot.ticker)
        ).scalars().all()
        return [IndicatorSnapshot.from_row(r) for r in rows if r.ticker not in inactive]
    finally:
        session.close()


def load_snapshot_map(on: date | None) -> dict[str, IndicatorSnapshot]:
    if on is None:
        return {}
    return {s.ticker: s for s in load_snapshots(on)}


def fetch_history(ticker: str, start: date, end: date) -> list[IndicatorSnapshot]:
    """Snapshots for ``ticker`` with ``start <= date <= end``, oldest first."""
    session = get_session()
    try:
        rows = session.execute(
            select(Snapshot)
            .where(Snapshot.ticker == ticker, Snapshot.date >= start, Snapshot.date <= end)
            .order_by(Snapshot.date)
        ).scalars().all()
        return [IndicatorSnapshot.from_row(r) for r in rows]
    finally:
        session.close()


def latest_snapshot(ticker: str) -> IndicatorSnapshot | None:
    session = get_session()
    try:
        row = session.execute(
            select(Snapshot)
            .where(Snapshot.ticker == ticker)
            .order_by(Snapshot.date.desc())
            .limit(1)
        ).scalars().first()
        return IndicatorSnapshot.from_row(row) if row else None
    finally:
        session.close()


def _derived_values(ctx: TickerContext) -> dict:
    values = {
        "score": to_json(ctx.scores),
        "bottom": to_json(ctx.bottom),
        "spike": to_json(ctx.spike),
        "oversold": to_json(ctx.oversold),
        "momentum_pop": to_json(ctx.momentum_pop),
        "filter_category": to_json(ctx.category),
        "daily_rank": to_json(ctx.rank),
    }
    if ctx.streak is not None:
        values.update(
            up_days=ctx.streak.up_days,
            down_days=ctx.streak.down_days,
            up_high=ctx.streak.up_high,
            down_low=ctx.streak.down_low,
        )
    if ctx.scores is not None:
        values.update(signal=ctx.scores.signal, overall_score=ctx.scores.overall_score)
    return values


def save_derived(run_date: date, contexts: list[TickerContext]) -> int:
    """Write every context's derived fields in one transaction.

    Raises PersistenceError after rolling back if any row fails.
    """
    if not contexts:
        return 0

    session = get_session()
    try:
        ids = dict(session.execute(
            select(Snapshot.ticker, Snapshot.id).where(Snapshot.date == run_date)
        ).all())
        params = []
        for ctx in contexts:
            row_id = ids.get(ctx.ticker)
            if row_id is None:
                logger.warning(f"{ctx.ticker}: snapshot for {run_date} vanished, not saved")
                continue
            params.append({"id": row_id, **_derived_values(ctx)})

        if params:
            session.execute(update(Snapshot), params)
        session.commit()
        logger.info(f"Saved derived fields for {len(params)} snapshots ({run_date})")
        return len(params)
    except Exception as e:
        session.rollback()
        logger.error(f"Bulk save for {run_date} failed, rolled back: {e}")
        raise PersistenceError(str(e)) from e
    finally:
        session.close()
