"""Daily indicator snapshot per ticker plus the derived signal columns."""

from datetime import date

from sqlalchemy import String, Date, Float, Integer, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from setup_screener.db import Base


class Snapshot(Base):
    __tablename__ = "snapshots"
    __table_args__ = (
        UniqueConstraint("ticker", "date", name="uq_snapshot_ticker_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ticker: Mapped[str] = mapped_column(String(20), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)

    # Price / OHLCV
    open: Mapped[float] = mapped_column(Float, default=0.0)
    high: Mapped[float] = mapped_column(Float, default=0.0)
    low: Mapped[float] = mapped_column(Float, default=0.0)
    close: Mapped[float] = mapped_column(Float, default=0.0)
    prev_close: Mapped[float] = mapped_column(Float, default=0.0)
    change: Mapped[float] = mapped_column(Float, default=0.0)
    volume: Mapped[float] = mapped_column(Float, default=0.0)
    avg_volume_10d: Mapped[float] = mapped_column(Float, default=0.0)
    vwap: Mapped[float] = mapped_column(Float, default=0.0)

    # Moving averages
    sma9: Mapped[float] = mapped_column(Float, default=0.0)
    sma20: Mapped[float] = mapped_column(Float, default=0.0)
    sma21: Mapped[float] = mapped_column(Float, default=0.0)
    sma50: Mapped[float] = mapped_column(Float, default=0.0)
    sma100: Mapped[float] = mapped_column(Float, default=0.0)
    sma200: Mapped[float] = mapped_column(Float, default=0.0)
    ema9: Mapped[float] = mapped_column(Float, default=0.0)
    ema20: Mapped[float] = mapped_column(Float, default=0.0)
    ema21: Mapped[float] = mapped_column(Float, default=0.0)
    ema50: Mapped[float] = mapped_column(Float, default=0.0)
    ema100: Mapped[float] = mapped_column(Float, default=0.0)
    ema200: Mapped[float] = mapped_column(Float, default=0.0)

    # Oscillators
    macd: Mapped[float] = mapped_column(Float, default=0.0)
    rsi14: Mapped[float] = mapped_column(Float, default=0.0)
    atr14: Mapped[float] = mapped_column(Float, default=0.0)
    momentum: Mapped[float] = mapped_column(Float, default=0.0)

    # External pattern / rating feeds
    long_patterns: Mapped[int] = mapped_column(Integer, default=0)
    short_patterns: Mapped[int] = mapped_column(Integer, default=0)
    long_term_rating: Mapped[str] = mapped_column(String(50), default="")

    # Derived by the pipeline
    up_days: Mapped[int] = mapped_column(Integer, default=0)
    down_days: Mapped[int] = mapped_column(Integer, default=0)
    up_high: Mapped[float] = mapped_column(Float, default=0.0)
    down_low: Mapped[float] = mapped_column(Float, default=0.0)
    signal: Mapped[str] = mapped_column(String(10), nullable=True)
    overall_score: Mapped[int] = mapped_column(Integer, nullable=True)
    score: Mapped[dict] = mapped_column(JSON, nullable=True)
    bottom: Mapped[dict] = mapped_column(JSON, nullable=True)
    spike: Mapped[dict] = mapped_column(JSON, nullable=True)
    oversold: Mapped[dict] = mapped_column(JSON, nullable=True)
    momentum_pop: Mapped[dict] = mapped_column(JSON, nullable=True)
    filter_category: Mapped[dict] = mapped_column(JSON, nullable=True)
    daily_rank: Mapped[dict] = mapped_column(JSON, nullable=True)
