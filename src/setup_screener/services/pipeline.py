"""Daily signal pipeline orchestrator.

History fetch -> Streaks -> Strategy scores -> Pattern detectors ->
Setup categorization -> Daily rank -> one bulk save.

Every stage fans out over a thread pool, one TickerContext per task, and
waits for all tickers before the next stage starts. A ticker that fails in
any stage is dropped from later stages and reported; the run carries on.
Nothing is written until every stage has finished.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait as wait_for_futures
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random

from setup_screener.config import settings
from setup_screener.db import init_db
from setup_screener.models.signals import TickerContext
from setup_screener.services import snapshot_store
from setup_screener.services.aggregator import score_snapshot
from setup_screener.services.categorizer import categorize
from setup_screener.services.daily_ranker import rank_ticker
from setup_screener.services.pattern_detectors import (
    detect_bottom, detect_spike, detect_oversold_bounce, detect_momentum_pop,
)
from setup_screener.services.streaks import compute_streak

logger = logging.getLogger(__name__)


class PipelineCancelled(Exception):
    """The run was cancelled between stages; nothing was persisted."""


@dataclass
class TickerError:
    ticker: str
    stage: str
    message: str


@dataclass
class PipelineReport:
    run_date: date | None
    processed_count: int = 0
    errors: list[TickerError] = field(default_factory=list)
    contexts: list[TickerContext] = field(default_factory=list)


def fetch_history_with_retry(ticker: str, start: date, end: date):
    """History lookup, retried on transient database and I/O errors."""
    for attempt in Retrying(
        stop=stop_after_attempt(settings.history_fetch_retries),
        wait=wait_exponential(
            multiplier=settings.history_fetch_retry_delay,
            max=settings.history_fetch_retry_delay * 8,
        ) + wait_random(0, settings.history_fetch_retry_delay),
        retry=retry_if_exception_type((SQLAlchemyError, OSError)),
        reraise=True,
    ):
        with attempt:
            return snapshot_store.fetch_history(ticker, start, end)


# ── Stages ────────────────────────────────────────────────────

def stage_streak(ctx: TickerContext):
    ctx.streak = compute_streak(ctx.snapshot, ctx.history)


def stage_scores(ctx: TickerContext):
    ctx.scores = score_snapshot(ctx.snapshot, ctx.history)


def stage_detectors(ctx: TickerContext):
    ctx.bottom = detect_bottom(ctx.snapshot, ctx.yesterday)
    ctx.spike = detect_spike(ctx.snapshot, ctx.yesterday)
    ctx.oversold = detect_oversold_bounce(ctx.snapshot, ctx.yesterday, ctx.bottom, ctx.spike)
    ctx.momentum_pop = detect_momentum_pop(ctx.snapshot, ctx.yesterday, ctx.spike)


def stage_category(ctx: TickerContext):
    ctx.category = categorize(
        ctx.snapshot, ctx.yesterday, ctx.streak, ctx.scores,
        ctx.bottom, ctx.spike, ctx.oversold, ctx.momentum_pop,
    )


def stage_rank(ctx: TickerContext):
    ctx.rank = rank_ticker(
        ctx.snapshot, ctx.scores, ctx.bottom, ctx.spike, ctx.momentum_pop, ctx.category,
    )


STAGES = [
    ("streak", stage_streak),
    ("scores", stage_scores),
    ("detectors", stage_detectors),
    ("category", stage_category),
    ("rank", stage_rank),
]


def _check_cancelled(cancel_event: threading.Event | None, before: str):
    if cancel_event is not None and cancel_event.is_set():
        logger.warning(f"Pipeline cancelled before stage '{before}'; discarding results")
        raise PipelineCancelled(before)


def _load_histories(contexts, run_date, errors) -> list[TickerContext]:
    """Fetch every ticker's history within one shared deadline.

    Fetches still running at the deadline are reported as timed out and
    abandoned; the pool is shut down without waiting for them.
    """
    start = run_date - timedelta(days=settings.history_window_days)
    end = run_date - timedelta(days=1)

    pool = ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="history")
    try:
        futures = [
            (ctx, pool.submit(fetch_history_with_retry, ctx.ticker, start, end))
            for ctx in contexts
        ]
        wait_for_futures([f for _, f in futures], timeout=settings.history_fetch_timeout_seconds)

        loaded = []
        for ctx, future in futures:
            if not future.done():
                future.cancel()
                logger.warning(f"{ctx.ticker}: history fetch timed out")
                errors.append(TickerError(ctx.ticker, "history", "timed out"))
                continue
            try:
                ctx.history = future.result()
                loaded.append(ctx)
            except Exception as e:
                logger.warning(f"{ctx.ticker}: history fetch failed: {e}")
                errors.append(TickerError(ctx.ticker, "history", str(e)))
        return loaded
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def _run_stage(pool, name, fn, contexts, errors) -> list[TickerContext]:
    futures = [(ctx, pool.submit(fn, ctx)) for ctx in contexts]

    survivors = []
    for ctx, future in futures:
        try:
            future.result()
            survivors.append(ctx)
        except Exception as e:
            logger.warning(f"{ctx.ticker}: stage '{name}' failed: {e}")
            errors.append(TickerError(ctx.ticker, name, str(e)))
    return survivors


def run_pipeline(
    run_date: date | None = None,
    cancel_event: threading.Event | None = None,
    save_results: bool = True,
) -> PipelineReport:
    """Compute streaks, scores, detectors, setups and ranks for one day.

    ``run_date`` defaults to the latest snapshot date in the store.
    Raises PipelineCancelled when ``cancel_event`` is set between stages and
    snapshot_store.PersistenceError when the final save fails.
    """
    init_db()
    if run_date is None:
        run_date = snapshot_store.latest_snapshot_date()
    if run_date is None:
        logger.warning("No snapshots in store. Run `setups data update` first.")
        return PipelineReport(run_date=None)

    snapshots = snapshot_store.load_snapshots(run_date)
    yesterday_map = snapshot_store.load_snapshot_map(snapshot_store.latest_snapshot_date(before=run_date))
    logger.info(f"Pipeline for {run_date}: {len(snapshots)} tickers, "
                f"{len(yesterday_map)} prior-day snapshots")

    contexts = [TickerContext(snapshot=s, yesterday=yesterday_map.get(s.ticker)) for s in snapshots]
    errors: list[TickerError] = []

    _check_cancelled(cancel_event, "history")
    contexts = _load_histories(contexts, run_date, errors)

    with ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="pipeline") as pool:
        for name, fn in STAGES:
            _check_cancelled(cancel_event, name)
            contexts = _run_stage(pool, name, fn, contexts, errors)

    _check_cancelled(cancel_event, "save")
    if save_results:
        snapshot_store.save_derived(run_date, contexts)

    logger.info(f"Pipeline complete: {len(contexts)} processed, {len(errors)} errors")
    return PipelineReport(
        run_date=run_date,
        processed_count=len(contexts),
        errors=errors,
        contexts=contexts,
    )
