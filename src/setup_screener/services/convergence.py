"""Convergence scorer: picks the few names where many factors line up.

Factor groups (max points, pass threshold):
1. Price action (30, >=20): 2-day move, resistance break, up-day streak
2. Volume (20, >=10): surge vs 5-day average, rising two days running
3. Patterns (15, >=8): bullish pattern count, no bearish patterns
4. Technicals (15, >=8): overall score, not overbought
5. Market structure (15, >=8): bottom conditions, up days
6. Scoring (15, >=8): spike score, overall score
7. Signals (10, >=8): BUY / HOLD / SELL
8. Liquidity (5, >=5): price band and 1M+ volume
9. Today's momentum (10, >=5): intraday change band
10. Convergence bonus (+10) once six groups pass; it counts as a factor.
The total is capped at 100.
"""

import logging
import threading
from datetime import date, timedelta

from sqlalchemy.exc import IntegrityError

from setup_screener.config import settings
from setup_screener.db import get_session, init_db
from setup_screener.models.pick import GuaranteedPick
from setup_screener.models.signals import IndicatorSnapshot, ConvergenceCandidate
from setup_screener.services import snapshot_store

logger = logging.getLogger(__name__)

MANUAL_PICK_RANK = 99

# Serializes the check-then-insert of picks within this process.
_persist_lock = threading.Lock()
BONUS_MIN_FACTORS = 6
STRONG_CONVERGENCE = "✓ STRONG CONVERGENCE - Multiple factors aligned!"

CONFIDENCE_LEVELS = [
    (9, 5, "EXTREMELY HIGH - Near Guaranteed"),
    (8, 5, "VERY HIGH - High Probability"),
    (7, 4, "HIGH - Strong Conviction"),
    (6, 4, "GOOD - Likely to Move"),
    (5, 3, "MODERATE - Watch Closely"),
]


def confidence_for(factors_passed: int) -> tuple[int, str]:
    for min_factors, level, text in CONFIDENCE_LEVELS:
        if factors_passed >= min_factors:
            return level, text
    return 2, "LOW - Speculative"


def is_eligible(snap: IndicatorSnapshot) -> bool:
    return (
        settings.min_price <= snap.close <= settings.max_price
        and snap.volume >= settings.min_volume
    )


# ── Factor groups ─────────────────────────────────────────────

def analyze_price_action(snap, history, passed, failed) -> int:
    points = 0

    if len(history) >= 2:
        price_2d = history[-2].close
        change_2d = (snap.close - price_2d) / price_2d * 100 if price_2d else 0.0
        if change_2d >= 5.0:
            passed.append(f"✓ Up {change_2d:.1f}% in 2 days (momentum confirmed)")
            points += 10
        else:
            failed.append("✗ Not up 5%+ in 2 days")

    if len(history) >= 5:
        recent_high = max(h.high for h in history[-5:])
        if recent_high > 0 and snap.close > recent_high * 1.02:
            breakout_pct = (snap.close - recent_high) / recent_high * 100
            passed.append(f"✓ Breaking resistance (+{breakout_pct:.1f}%)")
            points += 10
        else:
            failed.append("✗ Not breaking resistance")

    if snap.up_days >= 2:
        passed.append(f"✓ {snap.up_days} consecutive up days")
        points += 10
    else:
        failed.append("✗ No uptrend structure")

    return points


def analyze_volume(snap, history, passed, failed) -> int:
    points = 0
    if len(history) < 3:
        return points

    recent = history[-5:]
    avg_volume = sum(h.volume for h in recent) / len(recent) or 1.0
    ratio = snap.volume / avg_volume
    if ratio >= 3.0:
        passed.append(f"✓ {ratio:.1f}X volume surge (institutional interest)")
        points += 10
    elif ratio >= 2.0:
        passed.append(f"✓ Above avg volume ({ratio:.1f}X)")
        points += 5
    else:
        failed.append("✗ Volume not 3X average")

    vol1, vol2 = history[-1].volume, history[-2].volume
    if snap.volume > vol1 > vol2:
        passed.append("✓ Volume increasing daily")
        points += 10
    else:
        failed.append("✗ Volume not increasing")

    return points


def analyze_patterns(snap, passed, failed) -> int:
    points = 0
    if snap.long_patterns >= 2:
        passed.append(f"✓ {snap.long_patterns} bullish patterns")
        points += 10
    else:
        failed.append("✗ Less than 2 bullish patterns")

    if snap.short_patterns == 0:
        passed.append("✓ No bearish patterns")
        points += 5
    else:
        failed.append("✗ Bearish patterns present")
    return points


def analyze_technicals(snap, passed, failed) -> int:
    points = 0
    if snap.overall_score is not None:
        if snap.overall_score >= 70:
            passed.append(f"✓ High overall score: {snap.overall_score}")
            points += 10
        else:
            failed.append("✗ Overall score < 70")

    change_pct = snap.change_pct
    if 0 < change_pct < 15:
        passed.append("✓ Healthy momentum (not overbought)")
        points += 5
    elif change_pct >= 15:
        failed.append(f"✗ Overbought (up {change_pct:.1f}% today)")
    return points


def analyze_market_structure(snap, passed, failed) -> int:
    points = 0
    if snap.bottom_conditions is not None:
        if snap.bottom_conditions >= 5:
            passed.append(f"✓ Bottom formed ({snap.bottom_conditions} conditions)")
            points += 10
        else:
            failed.append("✗ No strong bottom")

    if snap.up_days >= 2:
        points += 5
    return points


def analyze_scoring(snap, passed, failed) -> int:
    points = 0
    if snap.spike_score is not None:
        if snap.spike_score >= 60:
            passed.append(f"✓ Spike score: {snap.spike_score}")
            points += 10
        else:
            failed.append("✗ Spike score < 60")

    if snap.overall_score is not None and snap.overall_score >= 70:
        points += 5
    return points


def analyze_signals(snap, passed, failed) -> int:
    if snap.signal is None:
        return 0
    if snap.signal == "BUY":
        passed.append("✓ BUY signal active")
        return 10
    if snap.signal != "SELL":
        passed.append("✓ HOLD signal (not SELL)")
        return 5
    failed.append("✗ SELL signal")
    return 0


def analyze_liquidity(snap, passed, failed) -> int:
    if (settings.min_price <= snap.close <= settings.max_price
            and snap.volume >= settings.liquidity_volume):
        passed.append("✓ Optimal price/volume range")
        return 5
    failed.append("✗ Not in optimal range")
    return 0


def analyze_todays_momentum(snap, passed, failed) -> int:
    change_pct = snap.change_pct
    if 3.0 <= change_pct <= 12.0:
        passed.append(f"✓ Strong today: +{change_pct:.1f}%")
        return 10
    if change_pct > 0:
        passed.append(f"✓ Up today: +{change_pct:.1f}%")
        return 5
    failed.append("✗ Down today")
    return 0


def score_candidate(snap: IndicatorSnapshot, history: list[IndicatorSnapshot]) -> ConvergenceCandidate:
    """Run all factor groups against one ticker.

    ``history`` holds the ticker's prior-day snapshots, oldest first.
    """
    history = sorted(history, key=lambda h: h.date)
    passed: list[str] = []
    failed: list[str] = []

    groups = [
        (analyze_price_action(snap, history, passed, failed), 20),
        (analyze_volume(snap, history, passed, failed), 10),
        (analyze_patterns(snap, passed, failed), 8),
        (analyze_technicals(snap, passed, failed), 8),
        (analyze_market_structure(snap, passed, failed), 8),
        (analyze_scoring(snap, passed, failed), 8),
        (analyze_signals(snap, passed, failed), 8),
        (analyze_liquidity(snap, passed, failed), 5),
        (analyze_todays_momentum(snap, passed, failed), 5),
    ]
    total = sum(points for points, _ in groups)
    factors = sum(1 for points, threshold in groups if points >= threshold)

    if factors >= BONUS_MIN_FACTORS:
        total += 10
        factors += 1
        passed.append(STRONG_CONVERGENCE)

    level, text = confidence_for(factors)
    return ConvergenceCandidate(
        snapshot=snap,
        factors_passed=factors,
        convergence_score=min(total, 100),
        passed_factors=passed,
        failed_factors=failed,
        confidence_level=level,
        confidence_text=text,
    )


def select_top(candidates: list[ConvergenceCandidate], n: int) -> list[ConvergenceCandidate]:
    """Strict pass first; relax to the fallback score when it yields fewer than ``n``."""
    strict = [
        c for c in candidates
        if c.convergence_score >= settings.guaranteed_threshold
        and c.factors_passed >= settings.min_convergence_factors
    ]
    strict.sort(key=lambda c: (c.factors_passed, c.convergence_score), reverse=True)
    if len(strict) >= n:
        return strict[:n]

    logger.info(f"Only {len(strict)} strict candidates, relaxing to score >= {settings.fallback_threshold}")
    relaxed = [c for c in candidates if c.convergence_score >= settings.fallback_threshold]
    relaxed.sort(key=lambda c: c.convergence_score, reverse=True)
    return relaxed[:n]


def _history_for(snap: IndicatorSnapshot) -> list[IndicatorSnapshot]:
    start = snap.date - timedelta(days=settings.convergence_history_days)
    return snapshot_store.fetch_history(snap.ticker, start, snap.date - timedelta(days=1))


def score_universe(run_date: date | None = None) -> list[ConvergenceCandidate]:
    """Every eligible ticker's convergence result, best score first."""
    init_db()
    if run_date is None:
        run_date = snapshot_store.latest_snapshot_date()
    if run_date is None:
        return []

    universe = [s for s in snapshot_store.load_snapshots(run_date) if is_eligible(s)]
    logger.info(f"Convergence scoring {len(universe)} eligible tickers for {run_date}")

    candidates = [score_candidate(s, _history_for(s)) for s in universe]
    candidates.sort(key=lambda c: c.convergence_score, reverse=True)
    return candidates


def find_top_candidates(n: int | None = None, run_date: date | None = None) -> list[ConvergenceCandidate]:
    if n is None:
        n = settings.top_n
    top = select_top(score_universe(run_date), n)
    logger.info(f"Selected {len(top)} convergence candidates")
    return top


# ── Persistence ───────────────────────────────────────────────

def _pick_from_candidate(c: ConvergenceCandidate, on: date, rank: int) -> GuaranteedPick:
    return GuaranteedPick(
        date=on,
        ticker=c.ticker,
        rank=rank,
        entry_price=c.price,
        factors_passed=c.factors_passed,
        convergence_score=c.convergence_score,
        confidence_level=c.confidence_level,
        passed_factors=list(c.passed_factors),
        failed_factors=list(c.failed_factors),
        tracking_date=on + timedelta(days=settings.tracking_delay_days),
        outcome="PENDING",
        tracked=False,
    )


def picks_exist(session, on: date) -> bool:
    return session.query(GuaranteedPick.id).filter(GuaranteedPick.date == on).first() is not None


def already_picked(session, on: date, ticker: str) -> bool:
    return (
        session.query(GuaranteedPick.id)
        .filter(GuaranteedPick.date == on, GuaranteedPick.ticker == ticker)
        .first()
        is not None
    )


def persist_todays_candidates(candidates: list[ConvergenceCandidate], on: date | None = None) -> int:
    """Save the day's picks once. A second call on the same day is a no-op.

    The check and the insert share one session under a lock; a unique
    constraint clash with another writer also ends as a no-op.
    """
    init_db()
    on = on or date.today()
    with _persist_lock:
        session = get_session()
        try:
            if picks_exist(session, on):
                logger.info(f"Picks for {on} already saved, skipping")
                return 0
            for rank, c in enumerate(candidates, start=1):
                session.add(_pick_from_candidate(c, on, rank))
            session.commit()
            logger.info(f"Saved {len(candidates)} picks for {on}")
            return len(candidates)
        except IntegrityError:
            session.rollback()
            logger.info(f"Picks for {on} were saved concurrently, skipping")
            return 0
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def force_persist_candidates(candidates: list[ConvergenceCandidate], on: date | None = None) -> int:
    """Replace the day's picks with ``candidates``."""
    init_db()
    on = on or date.today()
    with _persist_lock:
        session = get_session()
        try:
            deleted = session.query(GuaranteedPick).filter(GuaranteedPick.date == on).delete()
            for rank, c in enumerate(candidates, start=1):
                session.add(_pick_from_candidate(c, on, rank))
            session.commit()
            logger.info(f"Force refresh for {on}: removed {deleted}, saved {len(candidates)} picks")
            return len(candidates)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def add_manual_pick(ticker: str, on: date | None = None) -> GuaranteedPick | None:
    """Score ``ticker`` from its latest snapshot and save it with rank 99.

    Returns None when the ticker has no snapshot or is already picked that day.
    """
    init_db()
    on = on or date.today()
    ticker = ticker.upper()
    snap = snapshot_store.latest_snapshot(ticker)
    if snap is None:
        logger.warning(f"{ticker}: no snapshot found, cannot add manual pick")
        return None

    candidate = score_candidate(snap, _history_for(snap))
    with _persist_lock:
        session = get_session()
        try:
            if already_picked(session, on, ticker):
                logger.info(f"{ticker} already picked for {on}")
                return None

            pick = _pick_from_candidate(candidate, on, MANUAL_PICK_RANK)
            session.add(pick)
            session.commit()
            session.refresh(pick)
            session.expunge(pick)
            logger.info(f"Manual pick added: {ticker} @ {pick.entry_price:.2f}")
            return pick
        except IntegrityError:
            session.rollback()
            logger.info(f"{ticker} was picked concurrently for {on}, skipping")
            return None
        finally:
            session.close()


def get_picks_by_date(on: date) -> list[GuaranteedPick]:
    session = get_session()
    try:
        picks = (
            session.query(GuaranteedPick)
            .filter(GuaranteedPick.date == on)
            .order_by(GuaranteedPick.rank)
            .all()
        )
        session.expunge_all()
        return picks
    finally:
        session.close()
