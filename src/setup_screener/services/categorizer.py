"""Priority-ordered setup categorization.

Seven rule sets are checked in fixed order; every match is recorded and the
first match becomes the primary category:
1. Explosive Spike
2. Oversold Bounce
3. Downtrend Reversal
4. MomentumPop
5. Breakout Watch
6. Trend Continuation
7. Overextended Warning
"""

from dataclasses import dataclass

from setup_screener.models.signals import (
    IndicatorSnapshot,
    StreakState,
    ScoreBundle,
    BottomSignal,
    SpikeSignal,
    OversoldBounceSignal,
    MomentumPopSignal,
    FilterCategory,
)


@dataclass(frozen=True)
class SetupInputs:
    today: IndicatorSnapshot
    yesterday: IndicatorSnapshot
    streak: StreakState
    scores: ScoreBundle
    bottom: BottomSignal
    spike: SpikeSignal
    oversold: OversoldBounceSignal
    momentum_pop: MomentumPopSignal


def is_explosive_spike(s: SetupInputs) -> bool:
    return (
        s.bottom.is_bottom
        and "Strong" in s.bottom.strength
        and s.oversold.bounce_score >= 40
        and s.streak.down_days >= 3
        and s.spike.spike_score >= 60
        and s.spike.spike_likely
        and s.today.long_patterns >= 1
    )


def is_oversold_bounce(s: SetupInputs) -> bool:
    return (
        s.oversold.is_bounce
        and s.oversold.bounce_score >= 40
        and s.bottom.is_bottom
        and s.streak.down_days >= 4
        and s.spike.spike_score < 40
        and s.today.long_patterns >= 1
        and s.scores.signal != "SELL"
    )


def is_downtrend_reversal(s: SetupInputs) -> bool:
    price = s.today.close
    return (
        s.streak.down_days >= 5
        and abs(price - s.streak.down_low) <= price * 0.02
        and "Reversal" in s.bottom.strength
        and s.oversold.bounce_score >= 30
        and s.today.long_patterns >= 1
    )


def is_momentum_pop(s: SetupInputs) -> bool:
    return s.momentum_pop.is_pop and s.momentum_pop.pop_score >= 60


def is_breakout_watch(s: SetupInputs) -> bool:
    return (
        s.streak.up_days in (1, 2)
        and s.streak.up_high > s.yesterday.high
        and s.today.long_patterns >= 1
        and 20 <= s.spike.spike_score < 60
        and s.scores.overall_score >= 40
    )


def is_trend_continuation(s: SetupInputs) -> bool:
    return (
        s.streak.up_days >= 3
        and s.streak.up_high >= s.today.close * 0.98
        and s.today.long_patterns >= 2
        and s.spike.spike_score < 40
        and s.scores.overall_score >= 60
        and s.scores.signal in ("BUY", "HOLD")
    )


def is_overextended(s: SetupInputs) -> bool:
    prev = s.today.prev_close
    change_pct = (s.today.close - prev) / prev * 100 if prev > 0 else 0.0
    return (
        s.streak.up_days >= 4
        and s.streak.up_high >= s.today.close * 1.05
        and change_pct > 3
        and s.spike.spike_score < 20
        and s.scores.signal == "SELL"
    )


SETUP_RULES = [
    ("Explosive Spike", is_explosive_spike,
     "Bottom true;Bottom Strength Strong;Oversold Bounce Score >= 40;Down Days >= 3;"
     "Spike Score >= 60;Spike Likely true;No of Long Patterns >= 1"),
    ("Oversold Bounce", is_oversold_bounce,
     "Oversold Bounce true;Oversold Bounce Score >= 40;Bottom true;Down Days >= 4;"
     "Spike Score < 40;No of Long Patterns >= 1;Signal not SELL"),
    ("Downtrend Reversal", is_downtrend_reversal,
     "Down Days >= 5;Down Low within 2% of Price;Bottom Strength Reversal;"
     "Oversold Bounce Score >= 30;No of Long Patterns >= 1"),
    ("MomentumPop", is_momentum_pop,
     "MomentumPop true;Pop Score >= 60"),
    ("Breakout Watch", is_breakout_watch,
     "Up Days 1-2;Up High > Previous High;No of Long Patterns >= 1;Spike Score 20-60;"
     "Overall Score >= 40"),
    ("Trend Continuation", is_trend_continuation,
     "Up Days >= 3;Up High within 2% of Price;No of Long Patterns >= 2;Spike Score < 40;"
     "Overall Score >= 60;Signal BUY or HOLD"),
    ("Overextended Warning", is_overextended,
     "Up Days >= 4;Up High 5% above Price;Daily Change % > 3%;Spike Score < 20;Signal SELL"),
]


def categorize(
    today: IndicatorSnapshot,
    yesterday: IndicatorSnapshot | None,
    streak: StreakState,
    scores: ScoreBundle,
    bottom: BottomSignal,
    spike: SpikeSignal,
    oversold: OversoldBounceSignal,
    momentum_pop: MomentumPopSignal,
) -> FilterCategory:
    result = FilterCategory()
    if yesterday is None:
        return result

    inputs = SetupInputs(today, yesterday, streak, scores, bottom, spike, oversold, momentum_pop)
    for name, rule, criteria in SETUP_RULES:
        if rule(inputs):
            result.categories.append(name)
            result.criteria.append(criteria)

    if result.categories:
        result.primary_category = result.categories[0]
    return result
