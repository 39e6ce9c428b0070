"""CLI entry point using Click + Rich."""

import logging
from datetime import date

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)


def _parse_date(value):
    return date.fromisoformat(value) if value else None


@click.group()
def cli():
    """Daily signal, setup ranking and convergence pick tracker."""
    pass


# ── Universe commands ──────────────────────────────────────────

@cli.group()
def universe():
    """Manage the tracked ticker universe."""
    pass


@universe.command("add")
@click.argument("symbols", nargs=-1, required=True)
def universe_add(symbols):
    """Add tickers to the universe."""
    from setup_screener.services.data_fetcher import save_tickers
    save_tickers(list(symbols))
    console.print(f"[green]Added {len(symbols)} tickers.[/]")


@universe.command("remove")
@click.argument("symbol")
def universe_remove(symbol):
    """Deactivate a ticker."""
    from setup_screener.services.data_fetcher import deactivate_ticker
    if deactivate_ticker(symbol):
        console.print(f"[yellow]{symbol.upper()} deactivated.[/]")
    else:
        console.print(f"[red]{symbol.upper()} is not in the universe.[/]")


@universe.command("list")
def universe_list():
    """List active tickers."""
    from setup_screener.services.data_fetcher import get_active_symbols
    symbols = get_active_symbols()
    if not symbols:
        console.print("[yellow]Universe is empty. Run `setups universe add AAPL MSFT ...`[/]")
        return
    console.print(f"[bold]{len(symbols)} active tickers:[/] " + ", ".join(symbols))


# ── Data commands ──────────────────────────────────────────────

@cli.group()
def data():
    """Download and manage snapshot data."""
    pass


@data.command("download")
def data_download():
    """Full download: OHLCV history + indicator snapshots for every active ticker."""
    from setup_screener.services.data_fetcher import full_download
    console.print("[bold green]Starting full data download...[/]")
    full_download()
    console.print("[bold green]Download complete![/]")


@data.command("update")
@click.option("--days", default=5, help="Days of recent snapshots to write")
def data_update(days):
    """Incremental update: refresh recent snapshots."""
    from setup_screener.services.data_fetcher import update_snapshots
    console.print(f"[bold]Updating last {days} days of snapshots...[/]")
    update_snapshots(days_back=days)
    console.print("[bold green]Update complete![/]")


# ── Pipeline commands ──────────────────────────────────────────

@cli.group()
def pipeline():
    """Run the daily signal pipeline."""
    pass


@pipeline.command("run")
@click.option("--date", "run_date", default=None, help="Snapshot date (YYYY-MM-DD), default latest")
def pipeline_run(run_date):
    """Compute scores, detectors, setups and ranks and save them."""
    from setup_screener.services.pipeline import run_pipeline

    console.print("[bold]Running signal pipeline...[/]")
    report = run_pipeline(run_date=_parse_date(run_date))

    if report.run_date is None:
        console.print("[yellow]No snapshots found. Run `setups data update` first.[/]")
        return

    console.print(Panel(
        f"Date: {report.run_date}  |  Processed: [green]{report.processed_count}[/]  |  "
        f"Errors: [{'red' if report.errors else 'green'}]{len(report.errors)}[/]",
        title="Pipeline Run",
    ))

    if report.errors:
        table = Table(title="Ticker Errors")
        table.add_column("Ticker", style="cyan")
        table.add_column("Stage")
        table.add_column("Error", style="red")
        for e in report.errors[:20]:
            table.add_row(e.ticker, e.stage, e.message)
        console.print(table)

    _print_setups(report.contexts)


def _print_setups(contexts, limit=25):
    ranked = [c for c in contexts if c.category is not None and c.category.has_setup]
    ranked.sort(key=lambda c: c.rank.pick_score if c.rank else 0, reverse=True)
    if not ranked:
        console.print("[yellow]No setups matched today.[/]")
        return

    table = Table(title=f"Setups ({len(ranked)})", show_lines=True)
    table.add_column("Ticker", style="cyan bold", width=8)
    table.add_column("Close", justify="right")
    table.add_column("Setup", width=22)
    table.add_column("Signal", justify="center")
    table.add_column("Overall", justify="right")
    table.add_column("Bottom", justify="right")
    table.add_column("Spike", justify="right")
    table.add_column("Pop", justify="right")
    table.add_column("Final", justify="right")
    table.add_column("Safety", justify="right")
    table.add_column("Alloc %", justify="right")
    table.add_column("Pick", justify="right")

    for c in ranked[:limit]:
        signal_color = {"BUY": "green", "SELL": "red"}.get(c.scores.signal, "yellow")
        table.add_row(
            c.ticker,
            f"${c.snapshot.close:,.2f}",
            c.category.primary_category,
            f"[{signal_color}]{c.scores.signal}[/] ({c.scores.signal_days}d)",
            str(c.scores.overall_score),
            f"{c.bottom.conditions_met} {c.bottom.strength}",
            f"{c.spike.spike_score}",
            f"{c.momentum_pop.pop_score}",
            f"{c.rank.final_rank:.1f}",
            f"{c.rank.safety_rank:.0f}",
            f"{c.rank.allocation:.1f}",
            f"[bold]{c.rank.pick_score:.1f}[/]",
        )
    console.print(table)


@pipeline.command("setups")
@click.option("--date", "run_date", default=None, help="Snapshot date (YYYY-MM-DD), default latest")
def pipeline_setups(run_date):
    """Show setups without saving (dry run)."""
    from setup_screener.services.pipeline import run_pipeline
    report = run_pipeline(run_date=_parse_date(run_date), save_results=False)
    _print_setups(report.contexts)


# ── Picks commands ─────────────────────────────────────────────

@cli.group()
def picks():
    """Convergence picks."""
    pass


def _print_candidates(candidates, title):
    table = Table(title=title, show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Ticker", style="cyan bold", width=8)
    table.add_column("Price", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Factors", justify="right")
    table.add_column("Confidence")
    table.add_column("Passed")

    for i, c in enumerate(candidates, start=1):
        score_color = "green" if c.convergence_score >= 80 else "yellow" if c.convergence_score >= 70 else "white"
        table.add_row(
            str(i),
            c.ticker,
            f"${c.price:,.2f}",
            f"[{score_color}]{c.convergence_score}[/]",
            f"{c.factors_passed}/10",
            c.confidence_text,
            "\n".join(c.passed_factors),
        )
    console.print(table)


@picks.command("top")
@click.option("--n", "n", type=int, default=None, help="Number of picks (default from settings)")
@click.option("--save/--no-save", default=True, help="Save as today's picks (once per day)")
def picks_top(n, save):
    """Select today's top convergence candidates."""
    from setup_screener.services.convergence import find_top_candidates, persist_todays_candidates

    candidates = find_top_candidates(n)
    if not candidates:
        console.print("[yellow]No candidates cleared the convergence threshold.[/]")
        return
    _print_candidates(candidates, "Top Convergence Candidates")

    if save:
        saved = persist_todays_candidates(candidates)
        if saved:
            console.print(f"[green]Saved {saved} picks for today.[/]")
        else:
            console.print("[dim]Today's picks were already saved. Use `setups picks refresh` to replace them.[/]")


@picks.command("refresh")
@click.option("--n", "n", type=int, default=None, help="Number of picks (default from settings)")
def picks_refresh(n):
    """Replace today's saved picks with a fresh selection."""
    from setup_screener.services.convergence import find_top_candidates, force_persist_candidates
    candidates = find_top_candidates(n)
    saved = force_persist_candidates(candidates)
    console.print(f"[green]Replaced today's picks with {saved} candidates.[/]")


@picks.command("scores")
@click.option("--limit", default=30, help="Rows to show")
def picks_scores(limit):
    """Convergence scores for every eligible ticker."""
    from setup_screener.services.convergence import score_universe
    candidates = score_universe()
    if not candidates:
        console.print("[yellow]No eligible tickers.[/]")
        return
    _print_candidates(candidates[:limit], f"Convergence Scores ({len(candidates)} eligible)")


@picks.command("list")
@click.option("--date", "on", default=None, help="Pick date (YYYY-MM-DD), default today")
def picks_list(on):
    """Show saved picks for a day."""
    from setup_screener.services.convergence import MANUAL_PICK_RANK, get_picks_by_date

    on = _parse_date(on) or date.today()
    saved = get_picks_by_date(on)
    if not saved:
        console.print(f"[yellow]No picks saved for {on}.[/]")
        return

    table = Table(title=f"Picks for {on}", show_lines=True)
    table.add_column("Rank", width=6)
    table.add_column("Ticker", style="cyan bold")
    table.add_column("Entry", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Factors", justify="right")
    table.add_column("Track On")
    table.add_column("Outcome")
    table.add_column("Max Gain", justify="right")

    for p in saved:
        outcome_color = {"SUCCESS": "green", "PARTIAL": "yellow", "FAIL": "red"}.get(p.outcome, "dim")
        table.add_row(
            "manual" if p.rank == MANUAL_PICK_RANK else str(p.rank),
            p.ticker,
            f"${p.entry_price:,.2f}",
            str(p.convergence_score),
            str(p.factors_passed),
            str(p.tracking_date),
            f"[{outcome_color}]{p.outcome}[/]",
            f"{p.max_gain_pct:+.1f}%" if p.max_gain_pct is not None else "-",
        )
    console.print(table)


@picks.command("add")
@click.argument("ticker")
def picks_add(ticker):
    """Add a manual pick for today from the ticker's latest snapshot."""
    from setup_screener.services.convergence import add_manual_pick
    pick = add_manual_pick(ticker)
    if pick:
        console.print(f"[green]Added {pick.ticker} @ ${pick.entry_price:,.2f} "
                      f"(score {pick.convergence_score}, {pick.factors_passed} factors)[/]")
    else:
        console.print(f"[yellow]{ticker.upper()} not added (no snapshot or already picked today).[/]")


# ── Outcome commands ───────────────────────────────────────────

@cli.group()
def outcomes():
    """Grade picks and review performance."""
    pass


@outcomes.command("track")
def outcomes_track():
    """Grade every pick whose tracking window has elapsed."""
    from setup_screener.services.outcome_tracker import track_pending_outcomes
    counts = track_pending_outcomes()
    console.print(
        f"[green]SUCCESS {counts['success']}[/]  |  [yellow]PARTIAL {counts['partial']}[/]  |  "
        f"[red]FAIL {counts['fail']}[/]"
    )


@outcomes.command("pick")
@click.argument("ticker")
@click.argument("pick_date")
def outcomes_pick(ticker, pick_date):
    """Grade one pick now (TICKER YYYY-MM-DD)."""
    from setup_screener.services.outcome_tracker import track_specific_pick
    pick = track_specific_pick(ticker, date.fromisoformat(pick_date))
    if pick is None:
        console.print(f"[red]No pick for {ticker.upper()} on {pick_date}.[/]")
        return
    console.print(Panel(
        f"Outcome: [bold]{pick.outcome}[/]  |  Entry ${pick.entry_price:,.2f}  |  "
        f"Max gain {pick.max_gain_pct or 0:+.1f}%  |  Final gain {pick.final_gain_pct or 0:+.1f}%  |  "
        f"Days to move {pick.days_to_move}",
        title=f"[bold]{pick.ticker}[/] ({pick.date})",
    ))


@outcomes.command("stats")
def outcomes_stats():
    """Historical pick performance."""
    from setup_screener.services.outcome_tracker import get_performance_stats
    stats = get_performance_stats()

    table = Table(title="Pick Performance")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Total Picks", str(stats["total_picks"]))
    table.add_row("Graded", str(stats["tracked_picks"]))
    table.add_row("Pending", str(stats["pending_picks"]))
    table.add_row("Success", f"{stats['success_count']} ({stats['success_rate']:.1f}%)")
    table.add_row("Partial", f"{stats['partial_count']} ({stats['partial_rate']:.1f}%)")
    table.add_row("Fail", f"{stats['fail_count']} ({stats['fail_rate']:.1f}%)")
    table.add_row("Avg Max Gain", f"{stats['avg_max_gain_pct']:+.1f}%")
    table.add_row("Avg Final Gain", f"{stats['avg_final_gain_pct']:+.1f}%")
    table.add_row("Avg Days to Move", f"{stats['avg_days_to_move']:.1f}")
    console.print(table)


# ── Alert commands ─────────────────────────────────────────────

@cli.group()
def alert():
    """Telegram alert setup and testing."""
    pass


@alert.command("setup")
def alert_setup():
    """Step-by-step guide to set up Telegram alerts."""
    console.print(Panel(
        "[bold]How to set up Telegram alerts:[/]\n\n"
        "[cyan]Step 1:[/] Open Telegram, search for @BotFather\n"
        "[cyan]Step 2:[/] Send /newbot and copy the token it gives you\n"
        "[cyan]Step 3:[/] Search for @userinfobot to get your chat ID\n"
        "[cyan]Step 4:[/] Set the environment variables:\n\n"
        "   [green]export SETUP_TELEGRAM_BOT_TOKEN='your-token-here'[/]\n"
        "   [green]export SETUP_TELEGRAM_CHAT_ID='your-chat-id-here'[/]\n\n"
        "[cyan]Step 5:[/] Test it:\n\n"
        "   [green]setups alert test[/]",
        title="[bold]Telegram Alert Setup[/]",
    ))


@alert.command("test")
def alert_test():
    """Send a test message to verify Telegram is working."""
    from setup_screener.config import settings
    from setup_screener.services.alerts import send_alert

    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        console.print("[red]Telegram not configured.[/]")
        console.print("Run [bold]setups alert setup[/] for instructions.")
        return

    console.print("Sending test message to Telegram...")
    send_alert("<b>✅ Setup Screener — Test Alert</b>\n\nTelegram alerts are working!")
    console.print("[green]Message sent! Check your Telegram.[/]")


@alert.command("now")
def alert_now():
    """Select picks and send the report to Telegram right now."""
    from setup_screener.config import settings
    from setup_screener.services.alerts import send_daily_report
    from setup_screener.services.convergence import find_top_candidates

    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        console.print("[red]Telegram not configured. Run `setups alert setup`[/]")
        return

    candidates = find_top_candidates()
    send_daily_report(candidates)
    console.print(f"[green]Alert sent![/] ({len(candidates)} picks)")


@alert.command("schedule")
def alert_schedule():
    """Start the daily scheduler (screening + outcome tracking)."""
    from setup_screener.config import settings
    from setup_screener.scheduler.daily_job import start_scheduler
    console.print("[bold green]Starting daily scheduler...[/]")
    console.print(f"Screening at {settings.screen_time}, tracking at {settings.track_time}.")
    console.print("Press Ctrl+C to stop.\n")
    start_scheduler()


if __name__ == "__main__":
    cli()
