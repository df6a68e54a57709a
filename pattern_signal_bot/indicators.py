from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
import math

from .models import IndicatorSnapshot, PriceBar


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def closes_of(bars: Sequence[PriceBar]) -> List[float]:
    return [b.close for b in bars]


def ema(values: Sequence[float], period: int) -> float:
    """EMA seeded with the first element of ``values``.

    The seed is whatever element starts the slice, so the same period over a
    different window gives a different value.
    """
    if not values:
        return 0.0
    alpha = 2.0 / (period + 1.0)
    out = float(values[0])
    for x in values[1:]:
        out = x * alpha + out * (1.0 - alpha)
    return out


def sma(values: Sequence[float], length: int) -> float:
    if length <= 0 or len(values) < length:
        raise ValueError(f"sma needs {length} values, got {len(values)}")
    return sum(values[-length:]) / float(length)


def rsi(closes: Sequence[float], period: int = 14) -> float:
    """RSI from a plain mean of the last ``period`` gains and losses.

    Gains and losses are filtered separately, so each side keeps its own most
    recent ``period`` moves. The sum is divided by ``period`` even when fewer
    moves exist.
    """
    changes = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [ch for ch in changes if ch > 0][-period:]
    losses = [-ch for ch in changes if ch < 0][-period:]

    avg_gain = sum(gains) / period if gains else 0.0
    avg_loss = sum(losses) / period if losses else 0.0
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 0.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(closes: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> Tuple[float, float, float]:
    """Returns (macd, signal, histogram).

    The MACD line history is rebuilt by recomputing both EMAs on every prefix,
    which keeps it consistent with the first-element seeding of ``ema``.
    """
    line = ema(closes, fast) - ema(closes, slow)
    series = []
    for i in range(len(closes)):
        prefix = closes[: i + 1]
        series.append(ema(prefix, fast) - ema(prefix, slow))
    sig = ema(series, signal)
    return line, sig, line - sig


def moving_averages(closes: Sequence[float]) -> Tuple[float, float, float]:
    """Returns (sma20, sma50, ema9). SMA50 averages whatever is available up to 50."""
    sma20 = sma(closes, 20)
    last50 = closes[-50:]
    sma50 = sum(last50) / min(50, len(closes))
    return sma20, sma50, ema(closes, 9)


def stochastic(bars: Sequence[PriceBar], period: int = 14) -> Tuple[float, float]:
    """Returns (%K, %D).

    %D is not a rolling mean of %K: it averages %K over up to three virtual
    samples depending on the total bar count, so it equals %K once there are
    three or more bars.
    """
    recent = bars[-period:]
    high = max(b.high for b in recent)
    low = min(b.low for b in recent)
    current = recent[-1].close
    k = 50.0 if high == low else ((current - low) / (high - low)) * 100.0
    n = len(bars)
    d = (k + (k if n > 1 else 0.0) + (k if n > 2 else 0.0)) / 3.0
    return k, d


def bollinger_bands(closes: Sequence[float], period: int = 20, mult: float = 2.0) -> Tuple[float, float, float]:
    """Returns (upper, middle, lower) using the population std-dev."""
    middle = sma(closes, period)
    window = closes[-period:]
    variance = sum((x - middle) ** 2 for x in window) / period
    std = math.sqrt(variance)
    return middle + std * mult, middle, middle - std * mult


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def atr(bars: Sequence[PriceBar], period: int = 14) -> float:
    trs = [
        true_range(bars[i].high, bars[i].low, bars[i - 1].close)
        for i in range(max(1, len(bars) - period), len(bars))
    ]
    return sum(trs) / len(trs) if trs else 0.0


def support_resistance(bars: Sequence[PriceBar]) -> Tuple[float, float]:
    """Range extremes of the window: (support, resistance)."""
    return min(b.low for b in bars), max(b.high for b in bars)


def pct_change(new: float, old: float) -> Optional[float]:
    if old == 0:
        return None
    return (new - old) / old * 100.0


def compute_snapshot(
    bars: Sequence[PriceBar],
    *,
    rsi_period: int = 14,
    macd_fast: int = 12,
    macd_slow: int = 26,
    macd_signal: int = 9,
    stoch_period: int = 14,
    bb_period: int = 20,
    bb_mult: float = 2.0,
    atr_period: int = 14,
) -> IndicatorSnapshot:
    closes = closes_of(bars)
    m_line, m_sig, m_hist = macd(closes, macd_fast, macd_slow, macd_signal)
    sma20, sma50, ema9 = moving_averages(closes)
    k, d = stochastic(bars, stoch_period)
    upper, middle, lower = bollinger_bands(closes, bb_period, bb_mult)
    support, resistance = support_resistance(bars)
    return IndicatorSnapshot(
        rsi=rsi(closes, rsi_period),
        macd=m_line,
        macd_signal=m_sig,
        macd_histogram=m_hist,
        sma20=sma20,
        sma50=sma50,
        ema9=ema9,
        stoch_k=k,
        stoch_d=d,
        bb_upper=upper,
        bb_middle=middle,
        bb_lower=lower,
        atr=atr(bars, atr_period),
        support=support,
        resistance=resistance,
    )
