"""Overall score, BUY/HOLD/SELL signal and signal streak length."""

from datetime import date, timedelta

from setup_screener.models.signals import IndicatorSnapshot, ScoreBundle, StrategyScore
from setup_screener.services.strategy_scorers import SCORERS

BUY_THRESHOLD = 60
SELL_THRESHOLD = 40
SIGNAL_LOOKBACK_DAYS = 30


def signal_for(overall_score: int) -> str:
    if overall_score >= BUY_THRESHOLD:
        return "BUY"
    if overall_score <= SELL_THRESHOLD:
        return "SELL"
    return "HOLD"


def overall_score(subs: list[StrategyScore]) -> int:
    """Mean of the sub-scores, each capped at 100."""
    if not subs:
        return 0
    capped = [min(max(s.score, 0), 100) for s in subs]
    return int(sum(capped) / len(capped))


def previous_weekday(d: date) -> date:
    d -= timedelta(days=1)
    while d.weekday() >= 5:
        d -= timedelta(days=1)
    return d


def count_signal_days(snap: IndicatorSnapshot, signal: str, history: list[IndicatorSnapshot]) -> int:
    """Consecutive days, today included, carrying ``signal``.

    Prior days are scanned most recent first inside the 30 calendar days that
    end on the previous weekday; a missing or different signal stops the scan.
    """
    end = previous_weekday(snap.date)
    start = end - timedelta(days=SIGNAL_LOOKBACK_DAYS)
    window = [h for h in history if start <= h.date <= end]
    window.sort(key=lambda h: h.date, reverse=True)

    days = 1
    for h in window:
        if h.signal is None or h.overall_score is None:
            break
        if h.signal != signal:
            break
        days += 1
    return days


def _signal_reason(signal: str, bundle: ScoreBundle) -> str:
    if signal == "BUY":
        lead = "Strong technical alignment across strategies"
    elif signal == "SELL":
        lead = "Weak technical setup across strategies"
    else:
        lead = "Mixed signals across strategies"
    summary = (
        f"Day {bundle.day_trading.score}, Swing {bundle.swing_trading.score}, "
        f"Reversal {bundle.reversal.score}, Breakout {bundle.breakout.score}, "
        f"Pattern {bundle.pattern.score}"
    )
    return f"{lead} ({summary})"


def score_snapshot(snap: IndicatorSnapshot, history: list[IndicatorSnapshot] | None = None) -> ScoreBundle:
    """Run all five scorers and aggregate them into a ScoreBundle."""
    bundle = ScoreBundle(**{name: scorer(snap) for name, scorer in SCORERS.items()})

    bundle.overall_score = overall_score(bundle.sub_scores())
    bundle.overall_reason = f"Average of 5 strategy scores: {bundle.overall_score}"
    bundle.signal = signal_for(bundle.overall_score)
    bundle.signal_reason = _signal_reason(bundle.signal, bundle)
    bundle.signal_days = count_signal_days(snap, bundle.signal, history or [])
    return bundle
