"""Daily ranking of tickers with a valid setup.

FinalRank blends the winning setup's own score (70%) with a correlated
strategy score (30%). SafetyRank is additive. Allocation is a position size
in percent, clamped to [3, 35].
PickScore = 0.60 * FinalRank + 0.25 * SafetyRank + 0.15 * Allocation.
"""

from setup_screener.models.signals import (
    IndicatorSnapshot,
    ScoreBundle,
    BottomSignal,
    SpikeSignal,
    MomentumPopSignal,
    FilterCategory,
    DailyRank,
)

MIN_ALLOCATION = 3.0
MAX_ALLOCATION = 35.0


def is_eligible(
    category: FilterCategory,
    bottom: BottomSignal,
    spike: SpikeSignal,
    momentum_pop: MomentumPopSignal,
) -> bool:
    if not category.has_setup:
        return False
    strong_bottom = bottom.is_bottom and bottom.conditions_met >= 4
    return momentum_pop.is_pop or spike.spike_likely or strong_bottom


def compute_final_rank(
    scores: ScoreBundle,
    bottom: BottomSignal,
    spike: SpikeSignal,
    momentum_pop: MomentumPopSignal,
) -> float:
    reversal = min(scores.reversal.score, 100)
    if momentum_pop.is_pop:
        return momentum_pop.pop_score * 0.70 + scores.overall_score * 0.30
    if spike.spike_likely:
        return spike.spike_score * 0.70 + reversal * 0.30
    if bottom.conditions_met >= 4:
        return min(bottom.conditions_met * 12, 100) * 0.70 + reversal * 0.30
    return 0.0


def compute_safety_rank(snap: IndicatorSnapshot, bottom: BottomSignal) -> float:
    safety = bottom.conditions_met * 10
    if snap.volume > snap.avg_volume_10d:
        safety += 10
    if 45 <= snap.rsi14 <= 60:
        safety += 10
    if snap.short_patterns == 0:
        safety += 10
    return min(safety, 100)


def compute_allocation(snap: IndicatorSnapshot, safety_rank: float, final_rank: float) -> float:
    price = snap.close
    if price == 0:
        return 5.0

    volatility = snap.atr14 / price * 100
    if volatility < 3:
        alloc = 30.0
    elif volatility < 6:
        alloc = 20.0
    else:
        alloc = 10.0

    alloc += (safety_rank - 50) / 20.0

    if final_rank >= 80:
        alloc += 5
    elif final_rank >= 60:
        alloc += 3
    elif final_rank >= 40:
        alloc += 1
    else:
        alloc -= 5

    # Cheap names get smaller positions
    if price < 20:
        alloc = min(alloc, 12.0)

    return max(MIN_ALLOCATION, min(MAX_ALLOCATION, alloc))


def rank_ticker(
    snap: IndicatorSnapshot,
    scores: ScoreBundle,
    bottom: BottomSignal,
    spike: SpikeSignal,
    momentum_pop: MomentumPopSignal,
    category: FilterCategory,
) -> DailyRank:
    if not is_eligible(category, bottom, spike, momentum_pop):
        return DailyRank()

    final_rank = compute_final_rank(scores, bottom, spike, momentum_pop)
    safety_rank = compute_safety_rank(snap, bottom)
    allocation = compute_allocation(snap, safety_rank, final_rank)
    pick_score = final_rank * 0.60 + safety_rank * 0.25 + allocation * 0.15

    return DailyRank(
        final_rank=round(final_rank, 2),
        safety_rank=round(safety_rank, 2),
        allocation=round(allocation, 2),
        pick_score=round(pick_score, 2),
    )
