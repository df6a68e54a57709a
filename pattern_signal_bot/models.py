from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

BUY = "BUY"
SELL = "SELL"


@dataclass(frozen=True)
class PriceBar:
    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float


# Ascending timestamps, one bar per 5 minutes.
PriceSeries = Sequence[PriceBar]


@dataclass(frozen=True)
class IndicatorSnapshot:
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma20: float
    sma50: float
    ema9: float
    stoch_k: float
    stoch_d: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    atr: float
    support: float
    resistance: float


@dataclass(frozen=True)
class PatternResult:
    action: str  # BUY or SELL
    confidence: int  # 0 means not enough bars
    bullish: float = 0.0
    bearish: float = 0.0
    total_weight: float = 0.0
    score_breakdown: str = ""


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class Session:
    name: str
    symbols: Tuple[str, ...]


@dataclass(frozen=True)
class Signal:
    symbol: str
    action: str  # BUY or SELL
    confidence: int
    start_time: datetime
    end_time: datetime
    session: str
    score_breakdown: str = ""
    signal_id: Optional[str] = None
