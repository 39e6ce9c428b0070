"""Day-over-day pattern detectors: bottom, spike, oversold bounce, momentum pop.

All four compare today's snapshot with yesterday's. Without a yesterday each
returns its neutral (default-constructed) result.

Order matters: the oversold-bounce detector takes the bottom and spike results
as inputs and the momentum-pop detector takes the spike result.
"""

from setup_screener.models.signals import (
    IndicatorSnapshot,
    BottomSignal,
    SpikeSignal,
    OversoldBounceSignal,
    MomentumPopSignal,
)

MAX_BOTTOM_CONDITIONS = 9


def _pct_below(price: float, average: float) -> float:
    """How far ``price`` sits below ``average`` in percent (negative if above)."""
    if average <= 0:
        return 0.0
    return (average - price) / average * 100


def _lower_wick_ratio(snap: IndicatorSnapshot) -> float:
    candle = snap.high - snap.low
    if candle <= 0:
        return 0.0
    return (min(snap.open, snap.close) - snap.low) / candle


def detect_bottom(today: IndicatorSnapshot, yesterday: IndicatorSnapshot | None) -> BottomSignal:
    """Count reversal conditions after a selloff.

    Bands on conditions met: >=8 Mega Bounce, >=5 Strong Reversal,
    >=3 Weak Signal. A bottom needs at least 5.
    """
    if yesterday is None:
        return BottomSignal()

    points = 0
    reasons = []
    price = today.close

    if 0 < today.rsi14 < 25:
        points += 1
        reasons.append(f"RSI extremely oversold ({today.rsi14:.1f})")

    dev20 = _pct_below(price, today.ema20)
    dev50 = _pct_below(price, today.ema50)
    if dev20 > 10:
        points += 1
        reasons.append(f"Price {int(dev20)}% below EMA20")
    if dev50 > 20:
        points += 1
        reasons.append(f"Price {int(dev50)}% below EMA50")

    vol_spike = today.volume / today.avg_volume_10d if today.avg_volume_10d > 0 else 0.0
    if vol_spike >= 2:
        points += 1
        reasons.append(f"Volume spike: {vol_spike:.2f}x average")
    if vol_spike >= 4:
        points += 1
        reasons.append(f"Major capitulation volume ({vol_spike:.2f}x)")

    if today.macd > 0 or today.macd > yesterday.macd:
        points += 1
        reasons.append("MACD turning bullish")

    if today.low > yesterday.low:
        points += 1
        reasons.append(f"Higher low ({today.low} > {yesterday.low})")

    if price > yesterday.high:
        points += 1
        reasons.append(f"Breaking above previous high ({price} > {yesterday.high})")

    if today.ema9 > today.ema21:
        points += 1
        reasons.append("EMA9 bullish crossover above EMA21")

    if _lower_wick_ratio(today) > 0.40 and today.close > today.open:
        points += 1
        reasons.append("Bullish reversal candle (hammer / long wick)")

    if price > today.prev_close and today.open < yesterday.open:
        points += 1
        reasons.append("Bullish engulfing pattern")

    if price > yesterday.high:
        points += 1
        reasons.append("Close above previous day's high, reversal confirmed")

    conditions = min(points, MAX_BOTTOM_CONDITIONS)
    if conditions >= 8:
        strength = "Mega Bounce"
    elif conditions >= 5:
        strength = "Strong Reversal"
    elif conditions >= 3:
        strength = "Weak Signal"
    else:
        strength = "None"

    return BottomSignal(
        is_bottom=conditions >= 5,
        conditions_met=conditions,
        strength=strength,
        reasons=reasons,
    )


def detect_spike(today: IndicatorSnapshot, yesterday: IndicatorSnapshot | None) -> SpikeSignal:
    """Score the odds of an outsized up-move in the next session.

    Components:
    - Volume ratio vs 10-day average (>=2x, >=4x)
    - Price above a rising VWAP
    - Range/ATR compression in three tiers
    - Lower-wick absorption
    - Close above yesterday's high
    - MACD positive and rising
    - EMA9 over EMA21
    """
    if yesterday is None:
        return SpikeSignal()

    score = 0
    reasons = []
    price = today.close

    vol_spike = today.volume / (today.avg_volume_10d + 1)
    if vol_spike >= 2.0:
        score += 15
        reasons.append(f"Volume spike {vol_spike:.2f}x avg")
    if vol_spike >= 4.0:
        score += 15
        reasons.append("Major institutional accumulation volume")

    if price > today.vwap and today.vwap > yesterday.vwap:
        score += 20
        reasons.append("Strong VWAP pressure (price above rising VWAP)")

    compression = (today.high - today.low) / (today.atr14 + 1)
    if compression < 0.50:
        score += 10
        reasons.append("Volatility compression (range < 0.5 ATR)")
    if compression < 0.30:
        score += 10
        reasons.append("Strong volatility squeeze (range < 0.3 ATR)")
    if compression < 0.20:
        score += 10
        reasons.append("Explosive squeeze (range < 0.2 ATR)")

    if _lower_wick_ratio(today) > 0.40:
        score += 10
        reasons.append("Buy-wall absorption (long lower wick)")

    if price > yesterday.high:
        score += 20
        reasons.append("Breaking above prior high, spike trigger")

    if today.macd > yesterday.macd and today.macd > 0:
        score += 15
        reasons.append("MACD positive and rising, momentum shift")

    if today.ema9 > today.ema21:
        score += 15
        reasons.append("EMA9 > EMA21 (micro bullish trend)")

    score = min(score, 100)
    if score >= 80:
        spike_type = "EXPLOSIVE"
    elif score >= 60:
        spike_type = "HIGH"
    elif score >= 40:
        spike_type = "MEDIUM"
    else:
        spike_type = "LOW"

    return SpikeSignal(
        spike_score=score,
        spike_likely=score >= 60,
        spike_type=spike_type,
        reasons=reasons,
    )


def detect_oversold_bounce(
    today: IndicatorSnapshot,
    yesterday: IndicatorSnapshot | None,
    bottom: BottomSignal,
    spike: SpikeSignal,
) -> OversoldBounceSignal:
    if yesterday is None:
        return OversoldBounceSignal()

    score = 0
    reasons = []

    ema50_gap = _pct_below(today.close, today.ema50)
    if 20 <= ema50_gap <= 60:
        score += 30
        reasons.append(f"Price {int(ema50_gap)}% below EMA50 (deep discount)")

    if 0 < today.rsi14 < 30:
        score += 20
        reasons.append(f"RSI {today.rsi14:.1f} is oversold")
    if 0 < today.rsi14 < 25:
        score += 30
        reasons.append("RSI extremely oversold")

    if bottom.conditions_met >= 5:
        score += 30
        reasons.append(f"Strong bottom reversal detected ({bottom.conditions_met} conditions)")

    if spike.spike_score >= 20:
        score += 10
        reasons.append("Volume + candle compression before bounce")

    score = min(score, 100)
    if score >= 80:
        bounce_type = "Explosive Bounce"
    elif score >= 60:
        bounce_type = "Deep Oversold"
    elif score >= 40:
        bounce_type = "Oversold"
    else:
        bounce_type = "None"

    return OversoldBounceSignal(
        bounce_score=score,
        is_bounce=score >= 60,
        bounce_type=bounce_type,
        reasons=reasons,
    )


def detect_momentum_pop(
    today: IndicatorSnapshot,
    yesterday: IndicatorSnapshot | None,
    spike: SpikeSignal,
) -> MomentumPopSignal:
    """Trend-following continuation setup in a bullish moving-average stack."""
    if yesterday is None:
        return MomentumPopSignal()

    score = 0
    reasons = []
    price = today.close

    if price > today.ema9 > today.ema21 > today.ema50:
        score += 20
        reasons.append("Bullish EMA alignment (price > 9 > 21 > 50)")

    if price > today.sma20 > today.sma50:
        score += 15
        reasons.append("Bullish SMA trend (price > SMA20 > SMA50)")

    if price > today.ema21:
        score += 10
        reasons.append("Price holding above EMA21")

    range_pct = (today.high - today.low) / price * 100 if price > 0 else 0.0
    if price > 0 and range_pct < 3.0:
        score += 10
        reasons.append("Tight consolidation (volatility contraction)")

    if today.ema20 > 0 and abs(today.ema20 - today.ema50) / today.ema20 < 0.02:
        score += 10
        reasons.append("EMA20 and EMA50 compressing (squeeze setup)")

    vol_ratio = today.volume / today.avg_volume_10d if today.avg_volume_10d > 0 else 0.0
    if 1.2 < vol_ratio < 3.0:
        score += 10
        reasons.append("Moderate volume expansion (accumulation)")

    if 30 <= spike.spike_score <= 60:
        score += 15
        reasons.append("Spike score in pressure zone (30-60)")

    if today.long_patterns >= 1:
        score += 10
        reasons.append("Intraday long patterns showing strength")

    if 50 <= today.rsi14 <= 65:
        score += 10
        reasons.append("RSI in momentum range (50-65)")

    score = min(score, 100)
    if score >= 60:
        if range_pct < 2.0:
            pop_type = "Squeeze Breakout"
        elif price > today.sma20:
            pop_type = "Trend Continuation"
        else:
            pop_type = "Momentum Pop"
    else:
        pop_type = "None"

    return MomentumPopSignal(
        pop_score=score,
        is_pop=score >= 60,
        pop_type=pop_type,
        reasons=reasons,
    )
