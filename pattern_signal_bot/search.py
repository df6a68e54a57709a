from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .intervals import INTERVAL_MINUTES, next_interval, to_ms
from .models import PatternResult, Signal
from .providers.base import PriceSeriesProvider
from .strategy import MultiTimeframeScorer, PatternScorer, final_confidence, signal_id

log = logging.getLogger("search")

MAX_ATTEMPTS = 50
MAX_QUALIFYING = 3
HISTORY_BARS = 50


@dataclass(frozen=True)
class Candidate:
    symbol: str
    result: PatternResult
    boost: float
    final_confidence: int
    attempt: int


def select_best(candidates: Iterable[Candidate]) -> Optional[Candidate]:
    """Highest final confidence wins; on a tie the earliest draw is kept."""
    best: Optional[Candidate] = None
    for c in candidates:
        if best is None or c.final_confidence > best.final_confidence:
            best = c
    return best


class SignalSearch:
    """Samples symbols at random until enough of them clear the threshold.

    Draws are with replacement and bounded by ``max_attempts`` whatever the
    provider does. The search stops early after ``max_qualifying`` hits and
    returns the strongest one.
    """

    def __init__(
        self,
        provider: PriceSeriesProvider,
        *,
        scorer: Optional[PatternScorer] = None,
        mtf: Optional[MultiTimeframeScorer] = None,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_ATTEMPTS,
        max_qualifying: int = MAX_QUALIFYING,
        history_bars: int = HISTORY_BARS,
        interval_minutes: int = INTERVAL_MINUTES,
        strategy_sig: Optional[str] = None,
    ):
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        if max_qualifying <= 0:
            raise ValueError(f"max_qualifying must be positive, got {max_qualifying}")
        self.provider = provider
        self.scorer = scorer or PatternScorer()
        self.mtf = mtf or MultiTimeframeScorer()
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.max_qualifying = max_qualifying
        self.history_bars = history_bars
        self.interval_minutes = interval_minutes
        self.strategy_sig = strategy_sig

    async def evaluate(self, symbol: str, attempt: int = 0) -> Candidate:
        try:
            bars = await self.provider.fetch_series(symbol, self.history_bars)
        except Exception as e:
            # scored as an empty series
            log.exception("draw_failed attempt=%d symbol=%s err=%s", attempt + 1, symbol, e)
            bars = []
        result = self.scorer.score(bars)
        boost = self.mtf.boost(bars)
        return Candidate(
            symbol=symbol,
            result=result,
            boost=boost,
            final_confidence=final_confidence(result.confidence, boost),
            attempt=attempt,
        )

    async def collect(self, symbols: Sequence[str], threshold: int, *, max_attempts: Optional[int] = None) -> List[Candidate]:
        """Qualifying candidates in draw order."""
        limit = self.max_attempts if max_attempts is None else int(max_attempts)
        qualifying: List[Candidate] = []
        if not symbols:
            log.warning("search_skipped reason=no_symbols")
            return qualifying

        attempts = 0
        while attempts < limit:
            symbol = self.rng.choice(symbols)
            cand = await self.evaluate(symbol, attempts)
            attempts += 1
            log.debug(
                "draw attempt=%d symbol=%s action=%s base=%d boost=%.2f final=%d",
                attempts,
                symbol,
                cand.result.action,
                cand.result.confidence,
                cand.boost,
                cand.final_confidence,
            )
            if cand.final_confidence >= threshold:
                qualifying.append(cand)
                if len(qualifying) >= self.max_qualifying:
                    break

        log.info("search_done attempts=%d qualifying=%d threshold=%d", attempts, len(qualifying), threshold)
        return qualifying

    async def search(
        self,
        symbols: Sequence[str],
        threshold: int,
        *,
        session: str = "",
        now: Optional[datetime] = None,
        max_attempts: Optional[int] = None,
    ) -> Optional[Signal]:
        qualifying = await self.collect(symbols, threshold, max_attempts=max_attempts)
        best = select_best(qualifying)
        if best is None:
            return None

        window = next_interval(now, self.interval_minutes)
        return Signal(
            symbol=best.symbol,
            action=best.result.action,
            confidence=best.final_confidence,
            start_time=window.start,
            end_time=window.end,
            session=session,
            score_breakdown=best.result.score_breakdown,
            signal_id=signal_id(best.symbol, best.result.action, to_ms(window.start), self.strategy_sig),
        )
