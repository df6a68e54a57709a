from __future__ import annotations

import logging
import math
import random
import time
from typing import Dict, Iterable, List, Optional

from ..models import PriceBar

log = logging.getLogger("simulator")

BAR_MS = 5 * 60 * 1000

BASE_PRICES: Dict[str, float] = {
    "USD/JPY": 145.5,
    "AUD/JPY": 99.2,
    "NZD/JPY": 94.8,
    "AUD/USD": 0.68,
    "NZD/USD": 0.65,
    "EUR/USD": 1.09,
    "GBP/USD": 1.27,
    "EUR/GBP": 0.86,
    "EUR/JPY": 158.5,
    "GBP/JPY": 184.2,
    "USD/CAD": 1.35,
    "USD/CHF": 0.88,
}

TRENDS = ("up", "down", "neutral")


class MarketSimulator:
    """In-process random-walk market, one 5m bar appended per fetch.

    Each symbol starts with 51 bars shaped by a slow sine drift plus noise.
    Every fetch advances that symbol by one bar under its current trend
    regime, which flips at random with 15% probability.
    """

    def __init__(
        self,
        symbols: Iterable[str],
        *,
        rng: Optional[random.Random] = None,
        start_ms: Optional[int] = None,
        initial_bars: int = 51,
        max_history: int = 60,
        trend_strength: float = 0.0005,
        volatility: float = 0.0008,
        regime_switch_prob: float = 0.15,
    ):
        self.rng = rng or random.Random()
        self.max_history = max_history
        self.trend_strength = trend_strength
        self.volatility = volatility
        self.regime_switch_prob = regime_switch_prob
        now_ms = start_ms if start_ms is not None else int(time.time() * 1000)

        self._bars: Dict[str, List[PriceBar]] = {}
        self._trends: Dict[str, str] = {}
        for sym in symbols:
            if sym in self._bars:
                continue
            self._bars[sym] = self._initial_bars(sym, now_ms, initial_bars)
            self._trends[sym] = "neutral"

    def _initial_bars(self, symbol: str, now_ms: int, count: int) -> List[PriceBar]:
        price = BASE_PRICES.get(symbol, 1.0)
        out: List[PriceBar] = []
        for i in range(count - 1, -1, -1):
            vol = 0.0005 * price
            drift = math.sin(i / 10) * vol
            noise = (self.rng.random() - 0.5) * vol * 2
            o = price
            c = price + drift + noise
            h = max(o, c) + self.rng.random() * vol
            l = min(o, c) - self.rng.random() * vol
            out.append(PriceBar(timestamp_ms=now_ms - i * BAR_MS, open=o, high=h, low=l, close=c))
            price = c
        return out

    def advance(self, symbol: str) -> PriceBar:
        history = self._bars[symbol]
        last = history[-1]
        trend = self._trends[symbol]
        strength = self.trend_strength if trend == "up" else (-self.trend_strength if trend == "down" else 0.0)

        vol = self.volatility * last.close
        noise = (self.rng.random() - 0.5) * vol
        o = last.close
        c = last.close + strength * last.close + noise
        h = max(o, c) + self.rng.random() * vol * 0.5
        l = min(o, c) - self.rng.random() * vol * 0.5
        bar = PriceBar(timestamp_ms=last.timestamp_ms + BAR_MS, open=o, high=h, low=l, close=c)

        history.append(bar)
        if len(history) > self.max_history:
            del history[: len(history) - self.max_history]

        if self.rng.random() > 1.0 - self.regime_switch_prob:
            self._trends[symbol] = self.rng.choice(TRENDS)
            log.debug("regime symbol=%s trend=%s", symbol, self._trends[symbol])
        return bar

    def history(self, symbol: str, count: int) -> List[PriceBar]:
        return list(self._bars.get(symbol, [])[-count:])

    async def fetch_series(self, symbol: str, count: int) -> List[PriceBar]:
        if symbol not in self._bars:
            log.warning("unknown_symbol symbol=%s", symbol)
            return []
        self.advance(symbol)
        return self.history(symbol, count)

    async def close(self) -> None:
        return None
