"""Grades convergence picks once their tracking window has elapsed.

Outcome bands on the maximum gain since entry: SUCCESS >= 15%,
PARTIAL >= 5%, otherwise FAIL. Scheduled tracking grades each pick once;
the UPDATE is guarded by ``tracked = false``. An on-demand grade of a
single pick overwrites any earlier grade.
"""

import logging
from datetime import date

from sqlalchemy import update

from setup_screener.config import settings
from setup_screener.db import get_session, init_db
from setup_screener.models.pick import GuaranteedPick
from setup_screener.models.signals import IndicatorSnapshot
from setup_screener.services import snapshot_store

logger = logging.getLogger(__name__)


def classify_outcome(max_gain_pct: float) -> str:
    if max_gain_pct >= settings.success_threshold_pct:
        return "SUCCESS"
    if max_gain_pct >= settings.partial_threshold_pct:
        return "PARTIAL"
    return "FAIL"


def days_to_threshold(history: list[IndicatorSnapshot], entry_price: float) -> int:
    """1-based index of the first day whose high reaches the success target, else -1."""
    target = entry_price * (1 + settings.success_threshold_pct / 100)
    for i, day in enumerate(sorted(history, key=lambda h: h.date), start=1):
        if day.high >= target:
            return i
    return -1


def evaluate_pick(pick: GuaranteedPick, current_price: float, history: list[IndicatorSnapshot]) -> dict:
    """Compute the outcome fields for a pick without writing them."""
    entry = pick.entry_price
    gain_pct = (current_price - entry) / entry * 100 if entry else 0.0

    max_price = max((h.high for h in history), default=0.0)
    max_gain_pct = (max_price - entry) / entry * 100 if max_price > 0 and entry else gain_pct

    outcome = classify_outcome(max_gain_pct)
    return {
        "max_price_reached": max_price if max_price > 0 else current_price,
        "max_gain_pct": round(max_gain_pct, 2),
        "final_price": current_price,
        "final_gain_pct": round(gain_pct, 2),
        "moved_threshold": outcome == "SUCCESS",
        "days_to_move": days_to_threshold(history, entry),
        "outcome": outcome,
        "tracked": True,
    }


def get_picks_needing_tracking(today: date | None = None) -> list[GuaranteedPick]:
    today = today or date.today()
    session = get_session()
    try:
        picks = (
            session.query(GuaranteedPick)
            .filter(GuaranteedPick.tracked == False, GuaranteedPick.tracking_date <= today)  # noqa: E712
            .order_by(GuaranteedPick.date, GuaranteedPick.rank)
            .all()
        )
        session.expunge_all()
        return picks
    finally:
        session.close()


def track_pick(
    pick: GuaranteedPick,
    current: IndicatorSnapshot | None,
    today: date | None = None,
    regrade: bool = False,
) -> str | None:
    """Grade one pick. Returns its outcome, or None when skipped.

    A pick whose ticker is missing from the current universe stays untracked.
    Without ``regrade`` the update only applies to a pick not yet tracked.
    """
    today = today or date.today()
    if current is None:
        logger.warning(f"{pick.ticker} not found in current data, skipping")
        return None

    history = snapshot_store.fetch_history(pick.ticker, pick.date, today)
    values = evaluate_pick(pick, current.close, history)

    stmt = update(GuaranteedPick).where(GuaranteedPick.id == pick.id)
    if not regrade:
        stmt = stmt.where(GuaranteedPick.tracked == False)  # noqa: E712

    session = get_session()
    try:
        result = session.execute(stmt.values(**values))
        session.commit()
    finally:
        session.close()

    if result.rowcount == 0:
        logger.info(f"{pick.ticker} ({pick.date}) already tracked elsewhere, skipping")
        return None

    logger.info(
        f"{pick.ticker} - Entry: ${pick.entry_price:.2f}, Max: ${values['max_price_reached']:.2f} "
        f"({values['max_gain_pct']:+.2f}%), Final: ${current.close:.2f} "
        f"({values['final_gain_pct']:+.2f}%), Outcome: {values['outcome']}"
    )
    return values["outcome"]


def _current_universe() -> dict[str, IndicatorSnapshot]:
    return snapshot_store.load_snapshot_map(snapshot_store.latest_snapshot_date())


def track_pending_outcomes(today: date | None = None) -> dict[str, int]:
    """Grade every due pick. Returns counts per outcome."""
    init_db()
    today = today or date.today()
    counts = {"success": 0, "partial": 0, "fail": 0}

    picks = get_picks_needing_tracking(today)
    if not picks:
        logger.info("No picks need tracking today")
        return counts

    logger.info(f"Found {len(picks)} picks to track")
    universe = _current_universe()
    for pick in picks:
        try:
            outcome = track_pick(pick, universe.get(pick.ticker), today)
        except Exception as e:
            logger.error(f"Error tracking pick for {pick.ticker}: {e}")
            continue
        if outcome:
            counts[outcome.lower()] += 1

    logger.info(f"Tracking complete: {counts}")
    return counts


def track_specific_pick(ticker: str, on: date, today: date | None = None) -> GuaranteedPick | None:
    """Grade one pick on demand, even if it is not yet due.

    An already graded pick is graded again against the latest data.
    """
    init_db()
    session = get_session()
    try:
        pick = (
            session.query(GuaranteedPick)
            .filter(GuaranteedPick.date == on, GuaranteedPick.ticker == ticker.upper())
            .first()
        )
        if pick is None:
            logger.warning(f"Pick not found: {ticker} on {on}")
            return None
        session.expunge(pick)
    finally:
        session.close()

    if pick.tracked:
        logger.info(f"{pick.ticker} ({pick.date}) was graded as {pick.outcome}, grading again")
    track_pick(pick, _current_universe().get(pick.ticker), today, regrade=True)

    session = get_session()
    try:
        refreshed = session.get(GuaranteedPick, pick.id)
        session.expunge(refreshed)
        return refreshed
    finally:
        session.close()


def get_performance_stats() -> dict:
    init_db()
    session = get_session()
    try:
        picks = session.query(GuaranteedPick).all()
    finally:
        session.close()

    tracked = [p for p in picks if p.tracked]
    by_outcome = {o: sum(1 for p in tracked if p.outcome == o) for o in ("SUCCESS", "PARTIAL", "FAIL")}

    def _rate(count):
        return round(count / len(tracked) * 100, 1) if tracked else 0.0

    def _avg(values):
        values = [v for v in values if v is not None]
        return round(sum(values) / len(values), 2) if values else 0.0

    return {
        "total_picks": len(picks),
        "tracked_picks": len(tracked),
        "pending_picks": len(picks) - len(tracked),
        "success_count": by_outcome["SUCCESS"],
        "partial_count": by_outcome["PARTIAL"],
        "fail_count": by_outcome["FAIL"],
        "success_rate": _rate(by_outcome["SUCCESS"]),
        "partial_rate": _rate(by_outcome["PARTIAL"]),
        "fail_rate": _rate(by_outcome["FAIL"]),
        "avg_max_gain_pct": _avg(p.max_gain_pct for p in tracked),
        "avg_final_gain_pct": _avg(p.final_gain_pct for p in tracked),
        "avg_days_to_move": _avg(
            p.days_to_move for p in tracked if p.outcome == "SUCCESS" and p.days_to_move and p.days_to_move > 0
        ),
    }
