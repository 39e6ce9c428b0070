"""Tests for the daily signal pipeline."""

import threading
import time
from datetime import date

import pytest
from sqlalchemy import select

from setup_screener.config import settings
from setup_screener.db import get_session
from setup_screener.models.snapshot import Snapshot
from setup_screener.services import pipeline, snapshot_store
from setup_screener.services.pipeline import PipelineCancelled, fetch_history_with_retry, run_pipeline

MONDAY = date(2024, 6, 10)
TUESDAY = date(2024, 6, 11)


def _seed(add_snapshot, tickers=("AAA",)):
    for ticker in tickers:
        add_snapshot(ticker, MONDAY, close=10.0, open=10.2, high=10.4, low=9.8, change=-0.2,
                     volume=900_000, avg_volume_10d=1_000_000)
        add_snapshot(ticker, TUESDAY, close=10.6, open=10.1, high=10.7, low=10.0, change=0.6,
                     prev_close=10.0, volume=2_500_000, avg_volume_10d=1_000_000,
                     vwap=10.3, macd=0.2, rsi14=55.0, ema9=10.2, ema21=10.0, ema50=9.7,
                     long_patterns=1)


def _row(ticker, day):
    session = get_session()
    try:
        return session.execute(
            select(Snapshot).where(Snapshot.ticker == ticker, Snapshot.date == day)
        ).scalars().one()
    finally:
        session.close()


def test_run_saves_derived_fields(db, add_snapshot):
    _seed(add_snapshot)

    report = run_pipeline(run_date=TUESDAY)
    assert report.run_date == TUESDAY
    assert report.processed_count == 1
    assert report.errors == []

    ctx = report.contexts[0]
    assert ctx.yesterday.date == MONDAY
    assert [h.date for h in ctx.history] == [MONDAY]
    assert ctx.streak.up_days == 1

    row = _row("AAA", TUESDAY)
    assert row.up_days == 1
    assert row.signal in ("BUY", "HOLD", "SELL")
    assert row.overall_score == ctx.scores.overall_score
    assert row.score["signal"] == row.signal
    assert row.bottom["conditions_met"] == ctx.bottom.conditions_met
    assert "primary_category" in row.filter_category
    assert "pick_score" in row.daily_rank

    # Monday's derived fields are untouched
    assert _row("AAA", MONDAY).signal is None


def test_run_defaults_to_latest_date(db, add_snapshot):
    _seed(add_snapshot)
    assert run_pipeline().run_date == TUESDAY


def test_empty_store(db):
    report = run_pipeline()
    assert report.run_date is None
    assert report.processed_count == 0


def test_dry_run_writes_nothing(db, add_snapshot):
    _seed(add_snapshot)
    report = run_pipeline(run_date=TUESDAY, save_results=False)
    assert report.processed_count == 1
    assert _row("AAA", TUESDAY).signal is None


def test_failed_history_fetch_drops_only_that_ticker(db, add_snapshot, monkeypatch):
    _seed(add_snapshot, tickers=("AAA", "BAD"))
    real_fetch = snapshot_store.fetch_history

    def flaky_fetch(ticker, start, end):
        if ticker == "BAD":
            raise RuntimeError("history unavailable")
        return real_fetch(ticker, start, end)

    monkeypatch.setattr(snapshot_store, "fetch_history", flaky_fetch)

    report = run_pipeline(run_date=TUESDAY)
    assert report.processed_count == 1
    assert [(e.ticker, e.stage) for e in report.errors] == [("BAD", "history")]
    assert "history unavailable" in report.errors[0].message
    assert _row("AAA", TUESDAY).signal is not None
    assert _row("BAD", TUESDAY).signal is None


def test_stage_failure_is_reported(db, add_snapshot, monkeypatch):
    _seed(add_snapshot, tickers=("AAA", "BAD"))
    real_streak = pipeline.compute_streak

    def broken_streak(snapshot, history):
        if snapshot.ticker == "BAD":
            raise ValueError("bad data")
        return real_streak(snapshot, history)

    monkeypatch.setattr(pipeline, "compute_streak", broken_streak)

    report = run_pipeline(run_date=TUESDAY)
    assert [c.ticker for c in report.contexts] == ["AAA"]
    assert [(e.ticker, e.stage) for e in report.errors] == [("BAD", "streak")]


def test_cancel_discards_results(db, add_snapshot):
    _seed(add_snapshot)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(PipelineCancelled):
        run_pipeline(run_date=TUESDAY, cancel_event=cancel)
    assert _row("AAA", TUESDAY).signal is None


def test_history_fetch_retries_transient_errors(monkeypatch):
    monkeypatch.setattr(settings, "history_fetch_retry_delay", 0.0)
    calls = []

    def flaky_fetch(ticker, start, end):
        calls.append(ticker)
        if len(calls) < 3:
            raise OSError("database is locked")
        return ["ok"]

    monkeypatch.setattr(snapshot_store, "fetch_history", flaky_fetch)
    assert fetch_history_with_retry("AAA", MONDAY, TUESDAY) == ["ok"]
    assert len(calls) == 3


def test_history_fetch_gives_up(monkeypatch):
    monkeypatch.setattr(settings, "history_fetch_retry_delay", 0.0)

    def always_fails(ticker, start, end):
        raise OSError("disk gone")

    monkeypatch.setattr(snapshot_store, "fetch_history", always_fails)
    with pytest.raises(OSError):
        fetch_history_with_retry("AAA", MONDAY, TUESDAY)


def test_hung_history_fetch_does_not_block_run(db, add_snapshot, monkeypatch):
    _seed(add_snapshot, tickers=("AAA", "SLOW"))
    monkeypatch.setattr(settings, "history_fetch_timeout_seconds", 0.3)
    real_fetch = snapshot_store.fetch_history

    def hanging_fetch(ticker, start, end):
        if ticker == "SLOW":
            time.sleep(2.0)
            return []
        return real_fetch(ticker, start, end)

    monkeypatch.setattr(snapshot_store, "fetch_history", hanging_fetch)

    started = time.monotonic()
    report = run_pipeline(run_date=TUESDAY)
    elapsed = time.monotonic() - started

    assert elapsed < 1.5
    assert [c.ticker for c in report.contexts] == ["AAA"]
    assert [(e.ticker, e.stage, e.message) for e in report.errors] == [("SLOW", "history", "timed out")]
    assert _row("SLOW", TUESDAY).signal is None
