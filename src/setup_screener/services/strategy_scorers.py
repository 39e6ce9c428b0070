"""Five single-snapshot strategy scorers.

Each scorer adds points for the conditions that fire and keeps a reason
fragment per condition:
- Day trading: momentum, volume surge vs 10-day average, VWAP, MACD
- Swing trading: EMA9 > EMA21 > EMA50 stack, MACD, analyst long-term BUY
- Reversal: RSI oversold, MACD, EMA9 reclaim
- Breakout: above EMA50, volume surge, MACD
- Chart pattern: bullish vs bearish pattern counts
Scores are truncated to int and are not capped here; the aggregator caps.
"""

from setup_screener.models.signals import IndicatorSnapshot, StrategyScore


def _finish(score: float, reasons: list[str]) -> StrategyScore:
    return StrategyScore(score=int(score), reason="; ".join(reasons) if reasons else "No signal")


def volume_surge_pct(snap: IndicatorSnapshot) -> float:
    """Percent of today's volume above the 10-day average (0 when unknown)."""
    if snap.avg_volume_10d <= 0:
        return 0.0
    return (snap.volume - snap.avg_volume_10d) / snap.avg_volume_10d * 100


def score_day_trading(snap: IndicatorSnapshot) -> StrategyScore:
    score = 0.0
    reasons = []

    if snap.momentum > 0:
        pts = snap.momentum * 2
        score += pts
        reasons.append(f"Positive momentum (+{pts:.1f})")

    vol_pct = volume_surge_pct(snap)
    if vol_pct > 0:
        pts = min(vol_pct, 50.0)
        score += pts
        reasons.append(f"Volume surge {vol_pct:.1f}% (+{int(pts)})")

    if snap.close > snap.vwap:
        score += 10
        reasons.append("Price above VWAP (+10)")

    if snap.macd > 0:
        pts = snap.macd * 3
        score += pts
        reasons.append(f"MACD rising (+{pts:.2f})")

    return _finish(score, reasons)


def score_swing_trading(snap: IndicatorSnapshot) -> StrategyScore:
    score = 0.0
    reasons = []

    if snap.ema9 > snap.ema21 > snap.ema50:
        score += 25
        reasons.append("EMA9 > EMA21 > EMA50 (strong bullish trend) (+25)")

    if snap.macd > 0:
        pts = snap.macd * 5
        score += pts
        reasons.append(f"MACD bullish momentum (+{pts:.2f})")

    if "buy" in snap.long_term_rating.lower():
        score += 20
        reasons.append("Analyst long-term BUY (+20)")

    return _finish(score, reasons)


def score_reversal(snap: IndicatorSnapshot) -> StrategyScore:
    score = 0.0
    reasons = []

    if 0 < snap.rsi14 < 35:
        score += 20
        reasons.append("RSI oversold (<35) (+20)")

    if snap.macd > 0:
        pts = snap.macd * 5
        score += pts
        reasons.append(f"MACD turning bullish (+{pts:.2f})")

    if snap.close > snap.ema9:
        score += 10
        reasons.append("Price reclaimed EMA9 (+10)")

    return _finish(score, reasons)


def score_breakout(snap: IndicatorSnapshot) -> StrategyScore:
    score = 0.0
    reasons = []

    if snap.close > snap.ema50:
        score += 20
        reasons.append("Price above EMA50 (breakout zone) (+20)")

    vol_pct = volume_surge_pct(snap)
    if vol_pct > 0:
        pts = min(vol_pct, 50.0)
        score += pts
        reasons.append(f"Volume spike {vol_pct:.1f}% (+{int(pts)})")

    if snap.macd > 0:
        pts = snap.macd * 5
        score += pts
        reasons.append(f"MACD momentum increasing (+{pts:.2f})")

    return _finish(score, reasons)


def score_pattern(snap: IndicatorSnapshot) -> StrategyScore:
    score = 0.0
    reasons = []

    if snap.long_patterns > snap.short_patterns:
        pts = min(snap.long_patterns * 20, 60)
        score += pts
        reasons.append(f"{snap.long_patterns} bullish chart patterns (+{pts})")
        if snap.short_patterns == 0:
            score += 20
            reasons.append("No bearish patterns (+20)")

    return _finish(score, reasons)


SCORERS = {
    "day_trading": score_day_trading,
    "swing_trading": score_swing_trading,
    "reversal": score_reversal,
    "breakout": score_breakout,
    "pattern": score_pattern,
}
