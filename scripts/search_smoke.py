from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone

from pattern_signal_bot.providers.simulator import MarketSimulator
from pattern_signal_bot.search import SignalSearch, select_best
from pattern_signal_bot.sessions import all_symbols, session_for
from pattern_signal_bot.strategy import MultiTimeframeScorer, PatternScorer


def run_case(name: str, seed: int, threshold: int, now: datetime):
    session = session_for(now)
    sim = MarketSimulator(all_symbols(), rng=random.Random(seed))
    search = SignalSearch(sim, rng=random.Random(seed))
    candidates = asyncio.run(search.collect(list(session.symbols), threshold))
    best = select_best(candidates)
    print(f"{name}: session={session.name} qualifying={[(c.symbol, c.final_confidence) for c in candidates]}")
    print(f"  -> {(best.symbol, best.result.action, best.final_confidence) if best else None}")


def main():
    scorer = PatternScorer()
    mtf = MultiTimeframeScorer()
    sim = MarketSimulator(["EUR/USD"], rng=random.Random(1))
    bars = asyncio.run(sim.fetch_series("EUR/USD", 50))
    res = scorer.score(bars)
    print("EUR/USD score:", res.action, res.confidence, "boost:", mtf.boost(bars))
    print("  breakdown:", res.score_breakdown)

    now = datetime(2024, 3, 11, 12, 3, tzinfo=timezone.utc)
    # Case 1: permissive threshold, stops after three hits
    run_case("threshold_0", 1, 0, now)
    # Case 2: default threshold
    run_case("threshold_65", 2, 65, now)
    # Case 3: unreachable threshold, exhausts attempts
    run_case("threshold_99", 3, 99, now)


if __name__ == "__main__":
    main()
