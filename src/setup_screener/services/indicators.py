"""Technical indicators: SMA/EMA, RSI, MACD, ATR, VWAP, volume averages.

``build_indicator_frame`` turns a daily OHLCV frame into one row per day with
every snapshot column the pipeline reads.
"""

import numpy as np
import pandas as pd

MA_PERIODS = (9, 20, 21, 50, 100, 200)


def sma(series: pd.Series, period: int) -> pd.Series:
    """Simple Moving Average."""
    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    """Exponential Moving Average (span-based, seeded from the first value)."""
    return series.ewm(span=period, adjust=False, min_periods=period).mean()


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """Wilder's RSI."""
    delta = close.diff()
    gain = delta.clip(lower=0)
    loss = -delta.clip(upper=0)
    avg_gain = gain.ewm(alpha=1 / period, adjust=False, min_periods=period).mean()
    avg_loss = loss.ewm(alpha=1 / period, adjust=False, min_periods=period).mean()
    rs = avg_gain / avg_loss.replace(0, np.nan)
    out = 100 - 100 / (1 + rs)
    # No losses in the window: fully overbought
    return out.where(avg_loss != 0, 100.0)


def macd(close: pd.Series, fast: int = 12, slow: int = 26) -> pd.Series:
    """MACD line (fast EMA minus slow EMA)."""
    return ema(close, fast) - ema(close, slow)


def atr(high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14) -> pd.Series:
    """Average True Range."""
    prev_close = close.shift(1)
    tr = pd.concat([
        high - low,
        (high - prev_close).abs(),
        (low - prev_close).abs(),
    ], axis=1).max(axis=1)
    return tr.rolling(window=period, min_periods=period).mean()


def vwap(high: pd.Series, low: pd.Series, close: pd.Series, volume: pd.Series,
         period: int = 20) -> pd.Series:
    """Rolling volume-weighted average of the typical price."""
    typical = (high + low + close) / 3
    pv = (typical * volume).rolling(window=period, min_periods=1).sum()
    vol = volume.rolling(window=period, min_periods=1).sum()
    return pv / vol.replace(0, np.nan)


def average_volume(volume: pd.Series, period: int = 10) -> pd.Series:
    """Trailing average volume over the previous ``period`` days, today excluded."""
    return volume.shift(1).rolling(window=period, min_periods=1).mean()


def momentum(close: pd.Series, period: int = 10) -> pd.Series:
    """Percent change over ``period`` days."""
    return (close / close.shift(period) - 1) * 100


def build_indicator_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Derive snapshot columns from a frame with open/high/low/close/volume.

    The index must be the trading date, ascending. Missing values become 0.
    """
    out = pd.DataFrame(index=df.index)
    close = df["close"]

    out["open"] = df["open"]
    out["high"] = df["high"]
    out["low"] = df["low"]
    out["close"] = close
    out["volume"] = df["volume"]
    out["prev_close"] = close.shift(1)
    out["change"] = close - out["prev_close"]

    for period in MA_PERIODS:
        out[f"sma{period}"] = sma(close, period)
        out[f"ema{period}"] = ema(close, period)

    out["macd"] = macd(close)
    out["rsi14"] = rsi(close, 14)
    out["atr14"] = atr(df["high"], df["low"], close, 14)
    out["momentum"] = momentum(close)
    out["avg_volume_10d"] = average_volume(df["volume"], 10)
    out["vwap"] = vwap(df["high"], df["low"], close, df["volume"])

    return out.fillna(0.0)
