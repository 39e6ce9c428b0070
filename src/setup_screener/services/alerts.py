"""Telegram alerts for daily picks, setups and outcome grading."""

import logging
from collections import Counter
from datetime import datetime

from setup_screener.config import settings

logger = logging.getLogger(__name__)

TELEGRAM_LIMIT = 4096


async def _send_telegram(text: str):
    """Send a message via Telegram bot."""
    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        logger.warning("Telegram not configured. Set SETUP_TELEGRAM_BOT_TOKEN and SETUP_TELEGRAM_CHAT_ID.")
        return False

    from telegram import Bot

    bot = Bot(token=settings.telegram_bot_token)
    try:
        await bot.send_message(
            chat_id=settings.telegram_chat_id,
            text=text,
            parse_mode="HTML",
        )
        return True
    except Exception as e:
        logger.error(f"Telegram send failed: {e}")
        return False


def send_alert(text: str):
    """Sync wrapper to send a Telegram alert."""
    import asyncio
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            loop.create_task(_send_telegram(text))
        else:
            asyncio.run(_send_telegram(text))
    except RuntimeError:
        asyncio.run(_send_telegram(text))


def format_picks_alert(candidates: list) -> str:
    """Format the day's convergence picks."""
    now = datetime.now().strftime("%d %b %Y, %I:%M %p")
    lines = [f"<b>🎯 Convergence Picks — {now}</b>", ""]

    if not candidates:
        lines.append("No candidates cleared the convergence threshold today.")
        return "\n".join(lines)

    for rank, c in enumerate(candidates, start=1):
        lines.append(
            f"<b>#{rank} {c.ticker}</b> ${c.price:,.2f}\n"
            f"  Score: {c.convergence_score} | Factors: {c.factors_passed}/10\n"
            f"  Confidence: {c.confidence_text}"
        )
        for reason in c.passed_factors[:4]:
            lines.append(f"  {reason}")
        lines.append("")

    lines.append(f"<i>Graded after {settings.tracking_delay_days} days "
                 f"(SUCCESS ≥ {settings.success_threshold_pct:.0f}%)</i>")
    return "\n".join(lines)


def format_setups_summary(report) -> str:
    """Summarize a pipeline run by primary setup."""
    counts = Counter(
        ctx.category.primary_category
        for ctx in report.contexts
        if ctx.category is not None and ctx.category.has_setup
    )
    lines = [
        f"<b>📊 Setups — {report.run_date}</b>",
        f"Processed: {report.processed_count} | Errors: {len(report.errors)}",
        "",
    ]
    if not counts:
        lines.append("No setups today.")
    for name, n in counts.most_common():
        lines.append(f"  {name}: {n}")

    ranked = sorted(
        (ctx for ctx in report.contexts if ctx.rank is not None and ctx.rank.pick_score > 0),
        key=lambda ctx: ctx.rank.pick_score,
        reverse=True,
    )
    if ranked:
        lines.append("")
        lines.append("<b>Top ranked</b>")
        for ctx in ranked[:5]:
            lines.append(
                f"  {ctx.ticker} {ctx.category.primary_category} "
                f"pick {ctx.rank.pick_score:.1f} | alloc {ctx.rank.allocation:.1f}%"
            )
    return "\n".join(lines)


def format_outcomes_alert(counts: dict, stats: dict) -> str:
    now = datetime.now().strftime("%d %b %Y")
    return "\n".join([
        f"<b>📈 Pick Outcomes — {now}</b>",
        "",
        f"Graded today: 🟢 {counts['success']} success | 🟡 {counts['partial']} partial | "
        f"🔴 {counts['fail']} fail",
        "",
        f"All time: {stats['tracked_picks']} graded, {stats['pending_picks']} pending",
        f"Success rate: {stats['success_rate']:.1f}% | Avg max gain: {stats['avg_max_gain_pct']:+.1f}%",
    ])


def send_daily_report(candidates: list, report=None):
    """Send picks plus the setup summary, split when over Telegram's limit."""
    parts = [format_picks_alert(candidates)]
    if report is not None and report.run_date is not None:
        parts.append(format_setups_summary(report))

    full_message = "\n\n━━━━━━━━━━━━━━━\n\n".join(parts)

    if len(full_message) <= TELEGRAM_LIMIT:
        send_alert(full_message)
    else:
        for part in parts:
            send_alert(part)
