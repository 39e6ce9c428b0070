"""Tests for bottom, spike, oversold-bounce and momentum-pop detection."""

from datetime import date

from setup_screener.models.signals import IndicatorSnapshot, BottomSignal, SpikeSignal
from setup_screener.services.pattern_detectors import (
    detect_bottom, detect_spike, detect_oversold_bounce, detect_momentum_pop,
)

TODAY = date(2024, 6, 12)
YESTERDAY = date(2024, 6, 11)


def _make_snapshot(day=TODAY, **kwargs):
    return IndicatorSnapshot(ticker="TEST", date=day, **kwargs)


def _selloff_pair():
    """A capitulation day that reclaims yesterday's high."""
    today = _make_snapshot(
        close=7.5, open=6.5, high=7.6, low=5.0, prev_close=6.8,
        ema20=10.0, ema50=11.538, ema9=8.0, ema21=7.9,
        rsi14=20.0, volume=5_000_000, avg_volume_10d=1_000_000, macd=0.1,
    )
    yesterday = _make_snapshot(day=YESTERDAY, high=7.2, low=4.8, open=7.0, macd=-0.2)
    return today, yesterday


def test_no_yesterday_is_neutral():
    today = _make_snapshot(close=10.0)
    assert detect_bottom(today, None) == BottomSignal()
    assert detect_spike(today, None) == SpikeSignal()
    assert detect_oversold_bounce(today, None, BottomSignal(), SpikeSignal()).bounce_score == 0
    pop = detect_momentum_pop(today, None, SpikeSignal())
    assert pop.pop_score == 0
    assert pop.pop_type == "None"


def test_mega_bounce_caps_conditions():
    today, yesterday = _selloff_pair()
    bottom = detect_bottom(today, yesterday)
    assert bottom.conditions_met == 9
    assert bottom.strength == "Mega Bounce"
    assert bottom.is_bottom
    assert len(bottom.reasons) > 9


def test_weak_bottom():
    today = _make_snapshot(close=10.0, rsi14=20.0, low=9.5, high=10.1, open=10.05, ema9=9.0, ema21=8.0)
    yesterday = _make_snapshot(day=YESTERDAY, low=9.0, high=11.0, open=9.5)
    bottom = detect_bottom(today, yesterday)
    # RSI, higher low, EMA9 over EMA21
    assert bottom.conditions_met == 3
    assert bottom.strength == "Weak Signal"
    assert not bottom.is_bottom


def test_explosive_spike_is_capped():
    today = _make_snapshot(
        close=10.0, open=9.95, high=10.02, low=9.92, vwap=9.8, atr14=2.0,
        volume=5_000_000, avg_volume_10d=1_000_000, macd=0.3, ema9=9.9, ema21=9.7,
    )
    yesterday = _make_snapshot(day=YESTERDAY, high=9.9, vwap=9.5, macd=0.1)
    spike = detect_spike(today, yesterday)
    assert spike.spike_score == 100
    assert spike.spike_type == "EXPLOSIVE"
    assert spike.spike_likely


def test_wide_range_day_is_low_spike():
    today = _make_snapshot(close=10.0, open=9.5, high=11.0, low=9.0, atr14=1.0)
    yesterday = _make_snapshot(day=YESTERDAY, high=12.0)
    spike = detect_spike(today, yesterday)
    assert spike.spike_score == 0
    assert spike.spike_type == "LOW"
    assert not spike.spike_likely


def test_explosive_oversold_bounce():
    today = _make_snapshot(close=7.5, ema50=11.538, rsi14=20.0)
    yesterday = _make_snapshot(day=YESTERDAY)
    bounce = detect_oversold_bounce(
        today, yesterday, BottomSignal(is_bottom=True, conditions_met=9), SpikeSignal(spike_score=30),
    )
    assert bounce.bounce_score == 100
    assert bounce.bounce_type == "Explosive Bounce"
    assert bounce.is_bounce


def test_mild_oversold_is_not_a_bounce():
    today = _make_snapshot(close=7.5, ema50=10.0, rsi14=28.0)
    yesterday = _make_snapshot(day=YESTERDAY)
    bounce = detect_oversold_bounce(today, yesterday, BottomSignal(), SpikeSignal())
    assert bounce.bounce_score == 50
    assert bounce.bounce_type == "Oversold"
    assert not bounce.is_bounce


def _trend_snapshot(high, low):
    return _make_snapshot(
        close=50.0, high=high, low=low, ema9=49.0, ema21=48.0, ema50=47.0, ema20=47.5,
        sma20=48.0, sma50=46.0, volume=1_500_000, avg_volume_10d=1_000_000,
        long_patterns=1, rsi14=55.0,
    )


def test_momentum_pop_trend_continuation():
    yesterday = _make_snapshot(day=YESTERDAY)
    pop = detect_momentum_pop(_trend_snapshot(50.6, 49.5), yesterday, SpikeSignal(spike_score=40))
    assert pop.pop_score == 100
    assert pop.is_pop
    assert pop.pop_type == "Trend Continuation"


def test_momentum_pop_squeeze_breakout():
    yesterday = _make_snapshot(day=YESTERDAY)
    pop = detect_momentum_pop(_trend_snapshot(50.4, 49.9), yesterday, SpikeSignal(spike_score=40))
    assert pop.pop_type == "Squeeze Breakout"
