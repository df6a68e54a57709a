from __future__ import annotations

import hashlib
import json
from typing import Dict, List, Optional

from .models import BUY, SELL, PatternResult, PriceSeries
from .indicators import closes_of, compute_snapshot, pct_change, rsi, round_half_up

MIN_BARS = 30

CONFIDENCE_FLOOR = 45
CONFIDENCE_CAP = 99
CONFIDENCE_SCALE = 3.5

MTF_CAP = 1.2


class _Tally:
    def __init__(self) -> None:
        self.bullish = 0.0
        self.bearish = 0.0
        self.total = 0.0
        self.notes: List[str] = []

    def bull(self, pts: float, label: str) -> None:
        self.bullish += pts
        self.notes.append(f"{label} +{pts:g} bull")

    def bear(self, pts: float, label: str) -> None:
        self.bearish += pts
        self.notes.append(f"{label} +{pts:g} bear")


class PatternScorer:
    """Weighted vote of classic indicators into an action and a confidence.

    Every factor adds a fixed weight to the denominator and, when it fires,
    points to exactly one side. Stronger readings earn larger points.
    """

    def __init__(
        self,
        *,
        rsi_period: int = 14,
        macd_fast: int = 12,
        macd_slow: int = 26,
        macd_signal: int = 9,
        stoch_period: int = 14,
        bb_period: int = 20,
        bb_mult: float = 2.0,
        atr_period: int = 14,
        min_bars: int = MIN_BARS,
    ):
        self.rsi_period = rsi_period
        self.macd_fast = macd_fast
        self.macd_slow = macd_slow
        self.macd_signal = macd_signal
        self.stoch_period = stoch_period
        self.bb_period = bb_period
        self.bb_mult = bb_mult
        self.atr_period = atr_period
        self.min_bars = min_bars

    def score(self, bars: PriceSeries) -> PatternResult:
        if len(bars) < self.min_bars:
            return PatternResult(action=BUY, confidence=0)

        snap = compute_snapshot(
            bars,
            rsi_period=self.rsi_period,
            macd_fast=self.macd_fast,
            macd_slow=self.macd_slow,
            macd_signal=self.macd_signal,
            stoch_period=self.stoch_period,
            bb_period=self.bb_period,
            bb_mult=self.bb_mult,
            atr_period=self.atr_period,
        )
        price = bars[-1].close
        t = _Tally()

        # RSI
        r = snap.rsi
        if r < 25:
            t.bull(3.0, "rsi<25")
        elif r < 35:
            t.bull(2.5, "rsi<35")
        elif r < 50:
            t.bull(1.2, "rsi<50")
        elif r > 75:
            t.bear(3.0, "rsi>75")
        elif r > 65:
            t.bear(2.5, "rsi>65")
        elif r > 50:
            t.bear(1.2, "rsi>50")
        t.total += 3.0

        # MACD cross with histogram strength
        hist = snap.macd_histogram
        strength = abs(hist)
        bonus = 1.5 if strength > 0.015 else (0.8 if strength > 0.005 else 0.0)
        if hist > 0 and snap.macd > snap.macd_signal:
            t.bull(2.5 + bonus, "macd")
        elif hist < 0 and snap.macd < snap.macd_signal:
            t.bear(2.5 + bonus, "macd")
        t.total += 2.5

        # MA alignment
        if price > snap.sma20 > snap.sma50:
            t.bull(2.5, "ma_aligned")
        elif price > snap.sma20 and price > snap.sma50:
            t.bull(1.5, "ma_above")
        elif price < snap.sma20 < snap.sma50:
            t.bear(2.5, "ma_aligned")
        elif price < snap.sma20 and price < snap.sma50:
            t.bear(1.5, "ma_below")
        t.total += 2.5

        # EMA9 proximity
        dist = abs(price - snap.ema9) / snap.ema9 if snap.ema9 else float("inf")
        if price > snap.ema9 and dist < 0.005:
            t.bull(2.0, "ema9_tight")
        elif price > snap.ema9 and dist < 0.015:
            t.bull(1.3, "ema9_near")
        elif price < snap.ema9 and dist < 0.005:
            t.bear(2.0, "ema9_tight")
        elif price < snap.ema9 and dist < 0.015:
            t.bear(1.3, "ema9_near")
        t.total += 2.0

        # Three consecutive closes, taken from the start of the last five bars
        c = closes_of(bars[-5:])
        gain3 = c[0] < c[1] < c[2]
        loss3 = c[0] > c[1] > c[2]
        if gain3 and price > snap.support:
            t.bull(2.5, "gain3")
        elif loss3 and price < snap.resistance:
            t.bear(2.5, "loss3")
        t.total += 2.5

        # Stochastic level, then %K vs %D
        k = snap.stoch_k
        if k < 15:
            t.bull(2.2, "stoch<15")
        elif k < 30:
            t.bull(1.5, "stoch<30")
        elif k > 85:
            t.bear(2.2, "stoch>85")
        elif k > 70:
            t.bear(1.5, "stoch>70")
        if k > snap.stoch_d:
            t.bull(1.2, "stoch_k>d")
        else:
            t.bear(1.2, "stoch_k<=d")
        t.total += 2.2

        # Bollinger position
        width = snap.bb_upper - snap.bb_lower
        pos = (price - snap.bb_lower) / width if width else 0.5
        if price < snap.bb_lower:
            t.bull(2.5, "bb_below")
        elif pos < 0.15:
            t.bull(1.8, "bb_low")
        elif price > snap.bb_upper:
            t.bear(2.5, "bb_above")
        elif pos > 0.85:
            t.bear(1.8, "bb_high")
        if price > snap.bb_middle and pos > 0.5:
            t.bull(0.8, "bb_tilt")
        elif price < snap.bb_middle and pos < 0.5:
            t.bear(0.8, "bb_tilt")
        t.total += 2.5

        # Volatility: ATR against the last five bars' range
        recent = bars[-5:]
        rng = max(b.high for b in recent) - min(b.low for b in recent)
        ratio = snap.atr / (rng or 0.001)
        if ratio > 1.2:
            t.bull(0.8, "vol_expanding")
        elif ratio > 0.8:
            t.bear(0.8, "vol_steady")
        t.total += 0.8

        # Short-term momentum
        change = pct_change(price, bars[-2].close) or 0.0
        if change > 0.08 and r < 70:
            t.bull(1.5, "momentum")
        if change < -0.08 and r > 30:
            t.bear(1.5, "momentum")
        t.total += 1.5

        action = BUY if t.bullish > t.bearish else SELL
        bullish_pct = t.bullish / t.total * 100.0
        agreement = abs(t.bullish - t.bearish) / t.total
        raw = round_half_up(bullish_pct * agreement * CONFIDENCE_SCALE)
        confidence = min(CONFIDENCE_CAP, max(CONFIDENCE_FLOOR, raw))

        return PatternResult(
            action=action,
            confidence=confidence,
            bullish=t.bullish,
            bearish=t.bearish,
            total_weight=t.total,
            score_breakdown=", ".join(t.notes),
        )


class MultiTimeframeScorer:
    """Confirmation boost from comparing a short window with the full window."""

    def __init__(self, *, short_window: int = 20, full_window: int = 50, rsi_period: int = 14, min_short_bars: int = 10):
        self.short_window = short_window
        self.full_window = full_window
        self.rsi_period = rsi_period
        self.min_short_bars = min_short_bars

    def boost(self, bars: PriceSeries) -> float:
        short = bars[-self.short_window:]
        if len(short) < self.min_short_bars:
            return 0.0
        full = bars[-self.full_window:]

        short_closes = closes_of(short)
        full_closes = closes_of(full)
        if not short_closes[0] or not full_closes[0]:
            return 0.0

        short_trend = 1 if short_closes[-1] > short_closes[0] else -1
        full_trend = 1 if full_closes[-1] > full_closes[0] else -1
        short_mom = (short_closes[-1] - short_closes[0]) / short_closes[0]
        full_mom = (full_closes[-1] - full_closes[0]) / full_closes[0]
        rsi_gap = abs(rsi(short_closes, self.rsi_period) - rsi(full_closes, self.rsi_period))

        score = 1.2 if short_trend == full_trend else 0.1
        if abs(short_mom) > 0.01:
            score += 0.4
        if abs(full_mom) > 0.02:
            score += 0.4
        if rsi_gap > 20:
            score += 0.2
        elif rsi_gap < 5:
            score += 0.3
        return min(MTF_CAP, score)


def boost_adjustment(boost: float) -> float:
    """Confidence points for a boost; agreement above 1.0 is rewarded steeply."""
    if boost > 1:
        return (boost - 1) * 8
    return boost * 4


def final_confidence(confidence: int, boost: float) -> int:
    return min(CONFIDENCE_CAP, round_half_up(confidence + boost_adjustment(boost)))


def stable_signature(sig: Dict[str, object]) -> str:
    payload = json.dumps(sig, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def signal_id(symbol: str, action: str, start_ms: int, strategy_sig: Optional[str]) -> Optional[str]:
    if not strategy_sig:
        return None
    base = f"{symbol}:{action}:{start_ms}:{strategy_sig}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()
