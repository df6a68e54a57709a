import random

import pytest

from pattern_signal_bot.models import BUY, SELL, PriceBar
from pattern_signal_bot.indicators import rsi
from pattern_signal_bot.strategy import (
    MultiTimeframeScorer,
    PatternScorer,
    boost_adjustment,
    final_confidence,
    signal_id,
    stable_signature,
)


def _series(closes, pad: float = 0.0002) -> list:
    """Bars whose open is the previous close and whose wicks extend by ``pad``."""
    bars = []
    prev = closes[0]
    for i, c in enumerate(closes):
        o = prev
        bars.append(PriceBar(timestamp_ms=i * 300_000, open=o, high=max(o, c) + pad, low=min(o, c) - pad, close=c))
        prev = c
    return bars


def _walk(seed: int, n: int = 50) -> list:
    rng = random.Random(seed)
    closes = [1.1]
    for _ in range(n - 1):
        closes.append(closes[-1] * (1 + (rng.random() - 0.5) * 0.004))
    return _series(closes)


def test_insufficient_data_sentinel():
    scorer = PatternScorer()
    short = _series([1.0 + i * 0.001 for i in range(29)])
    res = scorer.score(short)
    assert res.action == BUY
    assert res.confidence == 0

    assert scorer.score([]).confidence == 0


def test_steady_uptrend_scores_buy():
    bars = _series([1.0 + i * 0.001 for i in range(50)])
    res = PatternScorer().score(bars)

    assert rsi([b.close for b in bars]) > 70
    # price > SMA20 > SMA50 fires on the bullish side
    assert "ma_aligned" in res.score_breakdown
    assert res.action == BUY
    assert 45 <= res.confidence <= 99
    assert res.total_weight == pytest.approx(19.5)
    assert res.bullish > res.bearish


def test_steady_downtrend_scores_sell():
    bars = _series([2.0 - i * 0.001 for i in range(50)])
    res = PatternScorer().score(bars)

    assert res.action == SELL
    assert 45 <= res.confidence <= 99
    assert res.bearish > res.bullish


def test_confidence_range_on_random_walks():
    scorer = PatternScorer()
    for seed in range(25):
        res = scorer.score(_walk(seed))
        assert res.action in (BUY, SELL)
        assert 45 <= res.confidence <= 99
        assert res.total_weight == pytest.approx(19.5)


def test_score_is_deterministic():
    bars = _walk(4)
    scorer = PatternScorer()
    assert scorer.score(bars) == scorer.score(bars)


def test_flat_series_does_not_divide_by_zero():
    bars = [PriceBar(timestamp_ms=i * 300_000, open=1.2, high=1.2, low=1.2, close=1.2) for i in range(40)]
    res = PatternScorer().score(bars)
    assert res.confidence >= 45
    assert res.action in (BUY, SELL)


def test_mtf_needs_ten_bars():
    mtf = MultiTimeframeScorer()
    assert mtf.boost(_series([1.0 + i * 0.001 for i in range(9)])) == 0.0
    assert mtf.boost([]) == 0.0


def test_mtf_agreement_is_capped():
    bars = _series([1.0 + i * 0.001 for i in range(50)])
    assert MultiTimeframeScorer().boost(bars) == pytest.approx(1.2)


def test_mtf_disagreement():
    falling = [2.0 - 0.01 * i for i in range(30)]
    rising = [falling[-1] + 0.001 * (j + 1) for j in range(20)]
    bars = _series(falling + rising)
    # 0.1 (trends disagree) + 0.4 + 0.4 (momentum) + 0.2 (RSI gap > 20)
    assert MultiTimeframeScorer().boost(bars) == pytest.approx(1.1)


def test_mtf_boost_bounded_on_random_walks():
    mtf = MultiTimeframeScorer()
    for seed in range(25):
        b = mtf.boost(_walk(seed))
        assert 0.0 <= b <= 1.2


def test_boost_adjustment_curve():
    assert boost_adjustment(0.0) == 0.0
    assert boost_adjustment(0.5) == pytest.approx(2.0)
    assert boost_adjustment(1.0) == pytest.approx(4.0)
    assert boost_adjustment(1.2) == pytest.approx(1.6)


def test_final_confidence():
    assert final_confidence(0, 0.0) == 0
    assert final_confidence(50, 0.5) == 52
    assert final_confidence(60, 1.1) == 61
    assert final_confidence(98, 1.0) == 99


def test_signal_id_requires_signature():
    assert signal_id("EUR/USD", BUY, 1000, None) is None
    sig = stable_signature({"rsi_period": 14})
    a = signal_id("EUR/USD", BUY, 1000, sig)
    assert a == signal_id("EUR/USD", BUY, 1000, sig)
    assert a != signal_id("EUR/USD", SELL, 1000, sig)


def test_thirty_bars_is_enough_to_score():
    bars = _series([1.0 + i * 0.001 for i in range(30)])
    res = PatternScorer().score(bars)
    assert 45 <= res.confidence <= 99
    assert res.total_weight == pytest.approx(19.5)

    res = PatternScorer().score(_walk(2, n=30))
    assert 45 <= res.confidence <= 99


def test_mtf_zero_first_close_gives_no_boost():
    mtf = MultiTimeframeScorer()
    # full window starts at zero
    assert mtf.boost(_series([0.0] + [1.0 + i * 0.001 for i in range(29)])) == 0.0
    # short window starts at zero
    assert mtf.boost(_series([0.0] + [1.0] * 9)) == 0.0
