"""Tests for Telegram message formatting."""

from datetime import date

from setup_screener.models.signals import (
    IndicatorSnapshot, ConvergenceCandidate, TickerContext, FilterCategory, DailyRank,
)
from setup_screener.services import alerts
from setup_screener.services.pipeline import PipelineReport, TickerError


def _make_context(ticker, category=None, pick_score=0.0):
    return TickerContext(
        snapshot=IndicatorSnapshot(ticker=ticker, date=date(2024, 6, 12)),
        category=FilterCategory(primary_category=category, categories=[category]) if category else FilterCategory(),
        rank=DailyRank(pick_score=pick_score, allocation=10.0),
    )


def test_picks_alert_lists_candidates():
    candidate = ConvergenceCandidate(
        snapshot=IndicatorSnapshot(ticker="AAA", date=date(2024, 6, 12), close=12.5),
        factors_passed=8,
        convergence_score=92,
        passed_factors=["✓ one", "✓ two"],
        confidence_text="VERY HIGH - High Probability",
    )
    text = alerts.format_picks_alert([candidate])
    assert "#1 AAA" in text
    assert "$12.50" in text
    assert "Factors: 8/10" in text
    assert "✓ two" in text


def test_picks_alert_without_candidates():
    assert "No candidates" in alerts.format_picks_alert([])


def test_setups_summary_counts_and_ranks():
    report = PipelineReport(
        run_date=date(2024, 6, 12),
        processed_count=3,
        errors=[TickerError("BAD", "history", "timed out")],
        contexts=[
            _make_context("AAA", "MomentumPop", 60.0),
            _make_context("BBB", "MomentumPop", 70.0),
            _make_context("CCC"),
        ],
    )
    text = alerts.format_setups_summary(report)
    assert "Processed: 3 | Errors: 1" in text
    assert "MomentumPop: 2" in text
    assert text.index("BBB") < text.index("AAA")
    assert "CCC" not in text


def test_daily_report_splits_long_messages(monkeypatch):
    sent = []
    monkeypatch.setattr(alerts, "send_alert", sent.append)
    monkeypatch.setattr(alerts, "TELEGRAM_LIMIT", 10)

    report = PipelineReport(run_date=date(2024, 6, 12))
    alerts.send_daily_report([], report)
    assert len(sent) == 2


def test_send_alert_without_token_is_noop(monkeypatch):
    monkeypatch.setattr(alerts.settings, "telegram_bot_token", "")
    alerts.send_alert("hello")
