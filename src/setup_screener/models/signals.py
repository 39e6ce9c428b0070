"""In-memory stage results threaded through the daily pipeline.

Every pipeline stage reads an ``IndicatorSnapshot`` (immutable) and writes its
own result type into a dedicated field of the ticker's ``TickerContext``.
Default-constructed results are the neutral outcome of each stage.
"""

from dataclasses import dataclass, field, asdict
from datetime import date


@dataclass(frozen=True)
class IndicatorSnapshot:
    ticker: str
    date: date
    close: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    prev_close: float = 0.0
    change: float = 0.0
    volume: float = 0.0
    avg_volume_10d: float = 0.0
    vwap: float = 0.0
    sma20: float = 0.0
    sma50: float = 0.0
    ema9: float = 0.0
    ema20: float = 0.0
    ema21: float = 0.0
    ema50: float = 0.0
    macd: float = 0.0
    rsi14: float = 0.0
    atr14: float = 0.0
    momentum: float = 0.0
    long_patterns: int = 0
    short_patterns: int = 0
    long_term_rating: str = ""

    # Values written by an earlier pipeline run
    up_days: int = 0
    down_days: int = 0
    up_high: float = 0.0
    down_low: float = 0.0
    signal: str | None = None
    overall_score: int | None = None
    bottom_conditions: int | None = None
    spike_score: int | None = None

    @property
    def change_pct(self) -> float:
        """Today's change as a percent of the close."""
        if not self.close:
            return 0.0
        return self.change / self.close * 100

    @classmethod
    def from_row(cls, row) -> "IndicatorSnapshot":
        """Build from a ``Snapshot`` ORM row."""
        bottom = row.bottom or {}
        spike = row.spike or {}
        return cls(
            ticker=row.ticker,
            date=row.date,
            close=row.close or 0.0,
            open=row.open or 0.0,
            high=row.high or 0.0,
            low=row.low or 0.0,
            prev_close=row.prev_close or 0.0,
            change=row.change or 0.0,
            volume=row.volume or 0.0,
            avg_volume_10d=row.avg_volume_10d or 0.0,
            vwap=row.vwap or 0.0,
            sma20=row.sma20 or 0.0,
            sma50=row.sma50 or 0.0,
            ema9=row.ema9 or 0.0,
            ema20=row.ema20 or 0.0,
            ema21=row.ema21 or 0.0,
            ema50=row.ema50 or 0.0,
            macd=row.macd or 0.0,
            rsi14=row.rsi14 or 0.0,
            atr14=row.atr14 or 0.0,
            momentum=row.momentum or 0.0,
            long_patterns=row.long_patterns or 0,
            short_patterns=row.short_patterns or 0,
            long_term_rating=row.long_term_rating or "",
            up_days=row.up_days or 0,
            down_days=row.down_days or 0,
            up_high=row.up_high or 0.0,
            down_low=row.down_low or 0.0,
            signal=row.signal,
            overall_score=row.overall_score,
            bottom_conditions=bottom.get("conditions_met"),
            spike_score=spike.get("spike_score"),
        )


@dataclass
class StreakState:
    up_days: int = 0
    down_days: int = 0
    up_high: float = 0.0
    down_low: float = 0.0


@dataclass
class StrategyScore:
    score: int = 0
    reason: str = "No signal"


@dataclass
class ScoreBundle:
    day_trading: StrategyScore = field(default_factory=StrategyScore)
    swing_trading: StrategyScore = field(default_factory=StrategyScore)
    reversal: StrategyScore = field(default_factory=StrategyScore)
    breakout: StrategyScore = field(default_factory=StrategyScore)
    pattern: StrategyScore = field(default_factory=StrategyScore)
    overall_score: int = 0
    overall_reason: str = ""
    signal: str = "HOLD"
    signal_reason: str = ""
    signal_days: int = 1

    def sub_scores(self) -> list[StrategyScore]:
        return [self.day_trading, self.swing_trading, self.reversal, self.breakout, self.pattern]


@dataclass
class BottomSignal:
    is_bottom: bool = False
    conditions_met: int = 0
    strength: str = "None"
    reasons: list[str] = field(default_factory=list)


@dataclass
class SpikeSignal:
    spike_score: int = 0
    spike_likely: bool = False
    spike_type: str = "None"
    reasons: list[str] = field(default_factory=list)


@dataclass
class OversoldBounceSignal:
    bounce_score: int = 0
    is_bounce: bool = False
    bounce_type: str = "None"
    reasons: list[str] = field(default_factory=list)


@dataclass
class MomentumPopSignal:
    pop_score: int = 0
    is_pop: bool = False
    pop_type: str = "None"
    reasons: list[str] = field(default_factory=list)


NO_SETUP = "NO-SETUP"


@dataclass
class FilterCategory:
    primary_category: str = NO_SETUP
    categories: list[str] = field(default_factory=list)
    criteria: list[str] = field(default_factory=list)

    @property
    def has_setup(self) -> bool:
        return self.primary_category != NO_SETUP


@dataclass
class DailyRank:
    final_rank: float = 0.0
    safety_rank: float = 0.0
    allocation: float = 0.0
    pick_score: float = 0.0


@dataclass
class TickerContext:
    """Per-ticker working state, owned by exactly one worker."""

    snapshot: IndicatorSnapshot
    yesterday: IndicatorSnapshot | None = None
    history: list[IndicatorSnapshot] = field(default_factory=list)
    streak: StreakState | None = None
    scores: ScoreBundle | None = None
    bottom: BottomSignal | None = None
    spike: SpikeSignal | None = None
    oversold: OversoldBounceSignal | None = None
    momentum_pop: MomentumPopSignal | None = None
    category: FilterCategory | None = None
    rank: DailyRank | None = None

    @property
    def ticker(self) -> str:
        return self.snapshot.ticker


@dataclass
class ConvergenceCandidate:
    snapshot: IndicatorSnapshot
    factors_passed: int = 0
    convergence_score: int = 0
    passed_factors: list[str] = field(default_factory=list)
    failed_factors: list[str] = field(default_factory=list)
    confidence_level: int = 2
    confidence_text: str = "LOW - Speculative"

    @property
    def ticker(self) -> str:
        return self.snapshot.ticker

    @property
    def price(self) -> float:
        return self.snapshot.close


def to_json(result) -> dict | None:
    """Serialize a stage result for a JSON column."""
    if result is None:
        return None
    return asdict(result)
