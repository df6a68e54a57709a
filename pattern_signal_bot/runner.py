from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Optional, Set

from .config import Config
from .formatters import format_no_signal, format_signal
from .intervals import next_interval, utc_now
from .models import Signal
from .providers.base import PriceSeriesProvider
from .providers.finnhub import FinnhubProvider
from .providers.simulator import MarketSimulator
from .search import SignalSearch
from .sessions import all_symbols, session_for
from .strategy import MultiTimeframeScorer, PatternScorer, stable_signature

log = logging.getLogger("runner")


def build_provider(cfg: Config) -> PriceSeriesProvider:
    p = cfg.provider
    if p.type == "finnhub":
        return FinnhubProvider(
            p.api_key,
            base_url=p.base_url,
            resolution=p.resolution,
            rest_timeout_s=p.rest_timeout_s,
            rest_max_retries=p.rest_max_retries,
        )
    if p.type == "simulator":
        return MarketSimulator(all_symbols(cfg.sessions), rng=random.Random(p.seed))
    raise ValueError(f"Unsupported provider type: {p.type}")


def build_search(cfg: Config, provider: PriceSeriesProvider, rng: Optional[random.Random] = None) -> SignalSearch:
    ind = cfg.indicators
    scorer = PatternScorer(
        rsi_period=ind.rsi_period,
        macd_fast=ind.macd_fast,
        macd_slow=ind.macd_slow,
        macd_signal=ind.macd_signal,
        stoch_period=ind.stoch_period,
        bb_period=ind.bb_period,
        bb_mult=ind.bb_mult,
        atr_period=ind.atr_period,
        min_bars=ind.min_bars,
    )
    mtf = MultiTimeframeScorer(
        short_window=ind.mtf_short_window,
        full_window=ind.mtf_full_window,
        rsi_period=ind.rsi_period,
        min_short_bars=ind.mtf_min_short_bars,
    )
    return SignalSearch(
        provider,
        scorer=scorer,
        mtf=mtf,
        rng=rng or random.Random(cfg.search.seed),
        max_attempts=cfg.search.max_attempts,
        max_qualifying=cfg.search.max_qualifying,
        history_bars=cfg.search.history_bars,
        interval_minutes=cfg.search.interval_minutes,
        strategy_sig=stable_signature(cfg.indicators.signature()),
    )


class SignalRunner:
    """Produces at most one signal per aligned interval for the active session."""

    def __init__(
        self,
        cfg: Config,
        *,
        provider: Optional[PriceSeriesProvider] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        on_signal: Optional[Callable[[str], None]] = None,
    ):
        self.cfg = cfg
        self.provider = provider if provider is not None else build_provider(cfg)
        self.search = build_search(cfg, self.provider, rng)
        self.clock = clock
        self.on_signal = on_signal
        self._dedupe: Set[str] = set()
        self._last_start: Optional[datetime] = None
        self._metrics = {
            "signals_emitted_total": 0,
            "signals_duplicate_total": 0,
            "intervals_without_signal_total": 0,
        }

    def _dedupe_key(self, sig: Signal) -> str:
        if sig.signal_id:
            return sig.signal_id
        return f"{sig.symbol}:{sig.action}:{sig.start_time.isoformat()}"

    async def run_once(self, now: Optional[datetime] = None, *, threshold: Optional[int] = None) -> Optional[Signal]:
        now = now or self.clock()
        session = session_for(now, self.cfg.sessions)
        thr = int(self.cfg.search.threshold if threshold is None else threshold)

        sig = await self.search.search(list(session.symbols), thr, session=session.name, now=now)
        if sig is None:
            self._metrics["intervals_without_signal_total"] += 1
            log.info("no_signal session=%s threshold=%d", session.name, thr)
            if self.on_signal:
                self.on_signal(format_no_signal(session.name, thr))
            return None

        return self._handle_signal(sig)

    def _handle_signal(self, sig: Signal) -> Optional[Signal]:
        key = self._dedupe_key(sig)
        if self.cfg.app.dedupe and key in self._dedupe:
            self._metrics["signals_duplicate_total"] += 1
            log.info(
                "signal_duplicate symbol=%s action=%s start=%s signal_id=%s",
                sig.symbol,
                sig.action,
                sig.start_time.isoformat(),
                sig.signal_id,
            )
            return None
        self._dedupe.add(key)
        self._metrics["signals_emitted_total"] += 1

        log.info(
            "signal symbol=%s action=%s confidence=%d session=%s start=%s end=%s signal_id=%s emitted_total=%d",
            sig.symbol,
            sig.action,
            sig.confidence,
            sig.session,
            sig.start_time.isoformat(),
            sig.end_time.isoformat(),
            sig.signal_id,
            self._metrics["signals_emitted_total"],
        )
        if self.on_signal:
            self.on_signal(format_signal(sig, include_breakdown=self.cfg.app.log_level.upper() == "DEBUG"))
        return sig

    async def run_forever(self) -> None:
        minutes = int(self.cfg.search.interval_minutes)
        log.info("runner_start name=%s provider=%s threshold=%d", self.cfg.app.name, self.cfg.provider.type, self.cfg.search.threshold)
        while True:
            now = self.clock()
            window = next_interval(now, minutes)
            if self._last_start is not None and window.start <= self._last_start:
                # Still inside the window we just served; step past its first minute.
                wake = self._last_start + timedelta(minutes=1)
                await asyncio.sleep(max(1.0, (wake - now).total_seconds()))
                continue

            try:
                await self.run_once(now)
            except Exception as e:
                log.exception("interval_failed start=%s err=%s", window.start.isoformat(), e)
            self._last_start = window.start

            delay = (window.start - self.clock()).total_seconds()
            await asyncio.sleep(max(1.0, delay))
