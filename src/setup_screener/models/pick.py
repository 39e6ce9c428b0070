"""Convergence picks, one per ticker per day, graded after the tracking window."""

from datetime import date, datetime

from sqlalchemy import String, Date, DateTime, Float, Integer, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from setup_screener.db import Base


class GuaranteedPick(Base):
    __tablename__ = "guaranteed_picks"
    __table_args__ = (
        UniqueConstraint("date", "ticker", name="uq_pick_date_ticker"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    ticker: Mapped[str] = mapped_column(String(20), index=True)
    rank: Mapped[int] = mapped_column(Integer)
    entry_price: Mapped[float] = mapped_column(Float)
    factors_passed: Mapped[int] = mapped_column(Integer)
    convergence_score: Mapped[int] = mapped_column(Integer)
    confidence_level: Mapped[int] = mapped_column(Integer)
    passed_factors: Mapped[list] = mapped_column(JSON, default=list)
    failed_factors: Mapped[list] = mapped_column(JSON, default=list)
    tracking_date: Mapped[date] = mapped_column(Date, index=True)

    # Filled in by the outcome tracker
    max_price_reached: Mapped[float] = mapped_column(Float, nullable=True)
    max_gain_pct: Mapped[float] = mapped_column(Float, nullable=True)
    final_price: Mapped[float] = mapped_column(Float, nullable=True)
    final_gain_pct: Mapped[float] = mapped_column(Float, nullable=True)
    moved_threshold: Mapped[bool] = mapped_column(Boolean, nullable=True)
    days_to_move: Mapped[int] = mapped_column(Integer, nullable=True)
    outcome: Mapped[str] = mapped_column(String(10), default="PENDING")
    tracked: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
