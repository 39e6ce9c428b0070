"""Tests for FinalRank, SafetyRank, Allocation and PickScore."""

from datetime import date

import pytest

from setup_screener.models.signals import (
    IndicatorSnapshot, ScoreBundle, StrategyScore, BottomSignal, SpikeSignal,
    MomentumPopSignal, FilterCategory, DailyRank,
)
from setup_screener.services.daily_ranker import (
    is_eligible, compute_final_rank, compute_allocation, rank_ticker,
)


def _make_snapshot(**kwargs):
    return IndicatorSnapshot(ticker="TEST", date=date(2024, 6, 12), **kwargs)


def test_momentum_pop_rank():
    snap = _make_snapshot(close=50.0, atr14=1.0, volume=2_000_000, avg_volume_10d=1_000_000, rsi14=50.0)
    rank = rank_ticker(
        snap,
        ScoreBundle(overall_score=50),
        BottomSignal(),
        SpikeSignal(),
        MomentumPopSignal(pop_score=80, is_pop=True),
        FilterCategory(primary_category="MomentumPop", categories=["MomentumPop"]),
    )
    assert rank.final_rank == pytest.approx(71.0)
    assert rank.safety_rank == pytest.approx(30.0)
    assert rank.allocation == pytest.approx(32.0)
    assert rank.pick_score == pytest.approx(54.9)


def test_spike_rank_uses_reversal():
    scores = ScoreBundle(reversal=StrategyScore(score=150))
    final = compute_final_rank(scores, BottomSignal(), SpikeSignal(spike_score=70, spike_likely=True), MomentumPopSignal())
    assert final == pytest.approx(70 * 0.7 + 100 * 0.3)


def test_bottom_rank():
    scores = ScoreBundle(reversal=StrategyScore(score=40))
    bottom = BottomSignal(is_bottom=True, conditions_met=5, strength="Strong Reversal")
    final = compute_final_rank(scores, bottom, SpikeSignal(), MomentumPopSignal())
    assert final == pytest.approx(54.0)


def test_allocation_floor():
    snap = _make_snapshot(close=10.0, atr14=1.0)
    assert compute_allocation(snap, safety_rank=0, final_rank=30) == 3.0


def test_allocation_ceiling():
    snap = _make_snapshot(close=100.0, atr14=1.0)
    assert compute_allocation(snap, safety_rank=100, final_rank=90) == 35.0


def test_cheap_ticker_allocation_capped():
    snap = _make_snapshot(close=10.0, atr14=0.1)
    assert compute_allocation(snap, safety_rank=100, final_rank=90) == 12.0


def test_zero_price_allocation():
    snap = _make_snapshot(close=0.0)
    assert compute_allocation(snap, safety_rank=50, final_rank=50) == 5.0


def test_no_setup_is_not_ranked():
    snap = _make_snapshot(close=50.0)
    rank = rank_ticker(
        snap, ScoreBundle(), BottomSignal(), SpikeSignal(),
        MomentumPopSignal(pop_score=80, is_pop=True), FilterCategory(),
    )
    assert rank == DailyRank()


def test_setup_without_strong_signal_is_not_eligible():
    category = FilterCategory(primary_category="Breakout Watch", categories=["Breakout Watch"])
    weak_bottom = BottomSignal(is_bottom=False, conditions_met=4)
    assert not is_eligible(category, weak_bottom, SpikeSignal(spike_score=50), MomentumPopSignal())
