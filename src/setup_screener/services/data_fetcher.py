"""Ticker universe management and batch yfinance snapshot ingestion."""

import logging
import time
from datetime import datetime

import pandas as pd
import yfinance as yf
from sqlalchemy.dialects.sqlite import insert as sqlite_upsert

from setup_screener.config import settings
from setup_screener.db import get_session, init_db
from setup_screener.models.snapshot import Snapshot
from setup_screener.models.ticker import Ticker
from setup_screener.services.indicators import MA_PERIODS, build_indicator_frame

logger = logging.getLogger(__name__)

# Columns owned by ingestion; derived and external columns are never overwritten.
PRICE_COLUMNS = [
    "open", "high", "low", "close", "prev_close", "change", "volume",
    "avg_volume_10d", "vwap", "macd", "rsi14", "atr14", "momentum",
] + [f"sma{p}" for p in MA_PERIODS] + [f"ema{p}" for p in MA_PERIODS]


def save_tickers(symbols: list[str], name: str = ""):
    """Add tickers to the universe or reactivate them."""
    init_db()
    session = get_session()
    try:
        for symbol in symbols:
            symbol = symbol.strip().upper()
            if not symbol:
                continue
            existing = session.get(Ticker, symbol)
            if existing:
                existing.is_active = True
                existing.last_updated = datetime.utcnow()
            else:
                session.add(Ticker(
                    symbol=symbol,
                    name=name,
                    is_active=True,
                    last_updated=datetime.utcnow(),
                ))
        session.commit()
        logger.info(f"Saved {len(symbols)} tickers to DB")
    finally:
        session.close()


def deactivate_ticker(symbol: str) -> bool:
    init_db()
    session = get_session()
    try:
        ticker = session.get(Ticker, symbol.upper())
        if ticker is None:
            return False
        ticker.is_active = False
        ticker.last_updated = datetime.utcnow()
        session.commit()
        return True
    finally:
        session.close()


def get_active_symbols() -> list[str]:
    """Get all active ticker symbols from DB."""
    init_db()
    session = get_session()
    try:
        rows = session.query(Ticker.symbol).filter(Ticker.is_active == True).order_by(Ticker.symbol).all()  # noqa: E712
        return [r[0] for r in rows]
    finally:
        session.close()


def download_snapshots(symbols: list[str], period: str = None, keep_days: int | None = None):
    """Download OHLCV in batches and store indicator snapshots.

    The full ``period`` is needed to warm up the long moving averages; only
    the last ``keep_days`` rows per ticker are written when given.
    """
    if period is None:
        period = settings.history_period

    total = len(symbols)
    batch_size = settings.batch_size

    for i in range(0, total, batch_size):
        batch = symbols[i:i + batch_size]
        batch_num = i // batch_size + 1
        total_batches = (total + batch_size - 1) // batch_size
        logger.info(f"Batch {batch_num}/{total_batches}: downloading {len(batch)} tickers...")

        try:
            data = yf.download(
                " ".join(batch),
                period=period,
                group_by="ticker",
                auto_adjust=False,
                threads=True,
                progress=False,
            )
        except Exception as e:
            logger.error(f"Batch {batch_num} download failed: {e}")
            continue

        if data.empty:
            logger.warning(f"Batch {batch_num}: no data returned")
            continue

        _save_batch_snapshots(data, batch, keep_days)

        if i + batch_size < total:
            time.sleep(settings.batch_delay_seconds)


def snapshot_rows(symbol: str, ohlcv: pd.DataFrame, keep_days: int | None = None) -> list[dict]:
    """Indicator rows for one ticker from a yfinance-style OHLCV frame."""
    ohlcv = ohlcv.dropna(subset=["Close"])
    if ohlcv.empty:
        return []

    frame = ohlcv.rename(columns={
        "Open": "open", "High": "high", "Low": "low", "Close": "close", "Volume": "volume",
    })[["open", "high", "low", "close", "volume"]].astype(float)
    indicators = build_indicator_frame(frame)
    if keep_days:
        indicators = indicators.iloc[-keep_days:]

    rows = []
    for dt, row in indicators.iterrows():
        trade_date = dt.date() if hasattr(dt, "date") else dt
        rows.append({"ticker": symbol, "date": trade_date,
                     **{col: float(row[col]) for col in PRICE_COLUMNS}})
    return rows


def _save_batch_snapshots(data: pd.DataFrame, symbols: list[str], keep_days: int | None):
    """Upsert downloaded snapshots into DB."""
    session = get_session()
    try:
        rows_to_insert = []
        for symbol in symbols:
            try:
                ticker_data = data[symbol] if isinstance(data.columns, pd.MultiIndex) else data
            except KeyError:
                continue
            rows_to_insert.extend(snapshot_rows(symbol, ticker_data, keep_days))

        if rows_to_insert:
            # Insert in chunks to stay under the SQLite variable limit
            chunk_size = 200
            for start in range(0, len(rows_to_insert), chunk_size):
                chunk = rows_to_insert[start:start + chunk_size]
                stmt = sqlite_upsert(Snapshot).values(chunk)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["ticker", "date"],
                    set_={col: getattr(stmt.excluded, col) for col in PRICE_COLUMNS},
                )
                session.execute(stmt)
            session.commit()
            logger.info(f"Saved {len(rows_to_insert)} snapshot rows")
    except Exception as e:
        session.rollback()
        logger.error(f"Error saving snapshots: {e}")
    finally:
        session.close()


def update_snapshots(days_back: int = 5):
    """Incremental update: refresh the last few days for all active tickers."""
    symbols = get_active_symbols()
    if not symbols:
        logger.warning("No active tickers found. Add some with `setups universe add`.")
        return
    logger.info(f"Updating snapshots for {len(symbols)} tickers ({days_back}d)...")
    download_snapshots(symbols, keep_days=days_back)


def full_download():
    """Download the whole history period for every active ticker."""
    symbols = get_active_symbols()
    logger.info(f"Starting full snapshot download for {len(symbols)} tickers...")
    download_snapshots(symbols)
    logger.info("Full download complete.")
