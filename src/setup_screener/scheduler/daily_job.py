"""Daily auto-run scheduler with Telegram alerts.

Two independent jobs:
- Screen (after the close): update snapshots, run the signal pipeline,
  select and save the day's convergence picks, send the report.
- Track (evening): grade picks whose tracking window has elapsed.
"""

import logging
import sys
import time

import schedule

from setup_screener.config import settings
from setup_screener.services.alerts import send_alert, send_daily_report, format_outcomes_alert
from setup_screener.services.convergence import find_top_candidates, persist_todays_candidates
from setup_screener.services.data_fetcher import update_snapshots
from setup_screener.services.outcome_tracker import track_pending_outcomes, get_performance_stats
from setup_screener.services.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def daily_screening_job():
    """Run the full daily pipeline and send Telegram alerts."""
    logger.info("=== Daily Screening Job Started ===")

    try:
        logger.info("Step 1: Updating snapshots...")
        update_snapshots(days_back=5)

        logger.info("Step 2: Running signal pipeline...")
        report = run_pipeline()
        logger.info(f"Pipeline: {report.processed_count} processed, {len(report.errors)} errors")

        logger.info("Step 3: Selecting convergence picks...")
        candidates = find_top_candidates()
        saved = persist_todays_candidates(candidates)
        logger.info(f"Picks: {len(candidates)} selected, {saved} saved")

        logger.info("Step 4: Sending Telegram alerts...")
        send_daily_report(candidates, report)

        logger.info("=== Daily Job Complete ===")

    except Exception as e:
        logger.error(f"Daily job failed: {e}", exc_info=True)
        send_alert(f"<b>❌ Setup Screener Error</b>\n\n{e}")


def daily_tracking_job():
    """Grade due picks and report the outcome counts."""
    logger.info("=== Outcome Tracking Job Started ===")
    try:
        counts = track_pending_outcomes()
        if any(counts.values()):
            send_alert(format_outcomes_alert(counts, get_performance_stats()))
        logger.info("=== Outcome Tracking Complete ===")
    except Exception as e:
        logger.error(f"Tracking job failed: {e}", exc_info=True)
        send_alert(f"<b>❌ Outcome Tracking Error</b>\n\n{e}")


def start_scheduler():
    """Start the scheduler for both daily jobs."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.data_dir / "scheduler.log"),
        ],
    )

    logger.info(f"Scheduler started. Screening at {settings.screen_time}, tracking at {settings.track_time}.")

    if settings.telegram_bot_token and settings.telegram_chat_id:
        logger.info("Telegram alerts: ENABLED")
        send_alert(f"<b>✅ Setup Scheduler Started</b>\nDaily screening will run at {settings.screen_time}.")
    else:
        logger.warning("Telegram alerts: DISABLED (set SETUP_TELEGRAM_BOT_TOKEN and SETUP_TELEGRAM_CHAT_ID)")

    schedule.every().day.at(settings.screen_time).do(daily_screening_job)
    schedule.every().day.at(settings.track_time).do(daily_tracking_job)

    if "--now" in sys.argv:
        logger.info("Running immediately (--now flag)")
        daily_screening_job()
        daily_tracking_job()

    while True:
        schedule.run_pending()
        time.sleep(60)


if __name__ == "__main__":
    start_scheduler()
