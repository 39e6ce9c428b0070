"""Tests for priority-ordered setup categorization."""

from datetime import date

from setup_screener.models.signals import (
    IndicatorSnapshot, StreakState, ScoreBundle, BottomSignal, SpikeSignal,
    OversoldBounceSignal, MomentumPopSignal, NO_SETUP,
)
from setup_screener.services.categorizer import categorize

TODAY = date(2024, 6, 12)
YESTERDAY = date(2024, 6, 11)


def _categorize(today=None, yesterday=None, streak=None, scores=None, bottom=None,
                spike=None, oversold=None, momentum_pop=None, no_yesterday=False):
    today = today or IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.0)
    if yesterday is None and not no_yesterday:
        yesterday = IndicatorSnapshot(ticker="TEST", date=YESTERDAY, high=10.5)
    return categorize(
        today,
        yesterday,
        streak or StreakState(),
        scores or ScoreBundle(),
        bottom or BottomSignal(),
        spike or SpikeSignal(),
        oversold or OversoldBounceSignal(),
        momentum_pop or MomentumPopSignal(),
    )


def test_no_yesterday_is_no_setup():
    result = _categorize(
        momentum_pop=MomentumPopSignal(pop_score=90, is_pop=True), no_yesterday=True,
    )
    assert result.primary_category == NO_SETUP
    assert result.categories == []
    assert not result.has_setup


def test_nothing_matches_is_no_setup():
    result = _categorize()
    assert result.primary_category == NO_SETUP
    assert result.criteria == []


def test_oversold_bounce_outranks_momentum_pop():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.0, long_patterns=1)
    result = _categorize(
        today=today,
        streak=StreakState(down_days=4, down_low=9.0),
        bottom=BottomSignal(is_bottom=True, conditions_met=6, strength="Strong Reversal"),
        spike=SpikeSignal(spike_score=30),
        oversold=OversoldBounceSignal(bounce_score=60, is_bounce=True, bounce_type="Deep Oversold"),
        momentum_pop=MomentumPopSignal(pop_score=70, is_pop=True),
    )
    assert result.primary_category == "Oversold Bounce"
    assert result.categories == ["Oversold Bounce", "MomentumPop"]
    assert len(result.criteria) == 2


def test_explosive_spike_outranks_downtrend_reversal():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.0, long_patterns=1)
    result = _categorize(
        today=today,
        streak=StreakState(down_days=5, down_low=9.9),
        bottom=BottomSignal(is_bottom=True, conditions_met=6, strength="Strong Reversal"),
        spike=SpikeSignal(spike_score=70, spike_likely=True, spike_type="HIGH"),
        oversold=OversoldBounceSignal(bounce_score=40, bounce_type="Oversold"),
    )
    assert result.primary_category == "Explosive Spike"
    assert result.categories == ["Explosive Spike", "Downtrend Reversal"]


def test_mega_bounce_is_not_a_reversal_strength():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.0, long_patterns=1)
    result = _categorize(
        today=today,
        streak=StreakState(down_days=5, down_low=9.9),
        bottom=BottomSignal(is_bottom=True, conditions_met=9, strength="Mega Bounce"),
        oversold=OversoldBounceSignal(bounce_score=40),
    )
    assert "Downtrend Reversal" not in result.categories


def test_overextended_warning():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.0, prev_close=9.5)
    result = _categorize(
        today=today,
        streak=StreakState(up_days=4, up_high=10.6),
        scores=ScoreBundle(overall_score=30, signal="SELL"),
        spike=SpikeSignal(spike_score=10),
    )
    assert result.primary_category == "Overextended Warning"
    assert result.categories == ["Overextended Warning"]


def test_breakout_watch():
    today = IndicatorSnapshot(ticker="TEST", date=TODAY, close=10.8, long_patterns=1)
    result = _categorize(
        today=today,
        streak=StreakState(up_days=2, up_high=11.0),
        scores=ScoreBundle(overall_score=45, signal="HOLD"),
        spike=SpikeSignal(spike_score=30),
    )
    assert result.primary_category == "Breakout Watch"
    assert result.criteria[0].startswith("Up Days 1-2")
