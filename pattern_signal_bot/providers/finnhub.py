from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..models import PriceBar

log = logging.getLogger("finnhub")

DEFAULT_BASE_URL = "https://finnhub.io/api"


def finnhub_symbol(symbol: str) -> str:
    """'EUR/USD' -> 'EURUSD'."""
    return symbol.replace("/", "").replace("_", "").upper()


def parse_candles(data: Dict[str, Any]) -> List[PriceBar]:
    """Turn Finnhub's column arrays (t/o/h/l/c) into bars.

    Missing or non-list ``o`` means no data. Timestamps arrive in seconds.
    Rows with a null or non-positive price, or that break the OHLC envelope,
    are dropped.
    """
    opens = data.get("o") if isinstance(data, dict) else None
    if not isinstance(opens, list):
        return []
    ts = data.get("t") or []
    highs = data.get("h") or []
    lows = data.get("l") or []
    closes = data.get("c") or []

    out: List[PriceBar] = []
    for i, o in enumerate(opens):
        try:
            bar = PriceBar(
                timestamp_ms=int(ts[i] or 0) * 1000,
                open=float(o or 0),
                high=float(highs[i] or 0),
                low=float(lows[i] or 0),
                close=float(closes[i] or 0),
            )
        except (IndexError, TypeError, ValueError):
            log.debug("candle_row_skipped index=%d", i)
            continue
        if min(bar.open, bar.high, bar.low, bar.close) <= 0:
            log.debug("candle_row_nonpositive index=%d ts=%d", i, bar.timestamp_ms)
            continue
        if bar.high < max(bar.open, bar.close) or bar.low > min(bar.open, bar.close):
            log.debug("candle_row_invalid index=%d ts=%d", i, bar.timestamp_ms)
            continue
        if out and bar.timestamp_ms <= out[-1].timestamp_ms:
            continue
        out.append(bar)
    return out


class FinnhubProvider:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        resolution: str = "5",
        rest_timeout_s: int = 20,
        rest_max_retries: int = 4,
        rest_backoff_s: float = 0.8,
    ):
        if not api_key:
            raise ValueError("Finnhub API key not configured (set provider.api_key or FINNHUB_API_KEY)")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.resolution = resolution
        self.rest_timeout_s = rest_timeout_s
        self.rest_max_retries = rest_max_retries
        self.rest_backoff_s = rest_backoff_s

        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """Close the shared aiohttp session (best-effort)."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.rest_timeout_s,
            connect=min(10, self.rest_timeout_s),
            sock_connect=min(10, self.rest_timeout_s),
            sock_read=max(10, int(self.rest_timeout_s * 0.75)),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout())
        return self._session

    async def fetch_series(self, symbol: str, count: int) -> List[PriceBar]:
        """Latest ``count`` bars, or [] when Finnhub cannot supply them."""
        url = f"{self.base_url}/forex/candle"
        params = {
            "symbol": finnhub_symbol(symbol),
            "resolution": self.resolution,
            "count": int(count),
            "token": self.api_key,
        }

        sess = await self._get_session()

        backoff = float(self.rest_backoff_s)
        data: Any = None
        for attempt in range(1, int(self.rest_max_retries) + 1):
            try:
                async with sess.get(url, params=params) as resp:
                    if resp.status == 429:
                        retry_after = resp.headers.get("Retry-After")
                        sleep_s = float(retry_after) if (retry_after and retry_after.isdigit()) else backoff
                        log.warning("rest_rate_limited symbol=%s sleep=%.1fs", symbol, sleep_s)
                        await asyncio.sleep(sleep_s)
                        backoff = min(backoff * 2.0, 20.0)
                        continue

                    if resp.status != 200:
                        txt = await resp.text()
                        log.warning("candles_failed symbol=%s status=%s body=%s", symbol, resp.status, txt[:200])
                        return []

                    data = await resp.json(content_type=None)
                break

            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                if attempt >= int(self.rest_max_retries):
                    log.warning("candles_gave_up symbol=%s attempts=%d err=%s", symbol, attempt, e)
                    return []
                log.warning(
                    "rest_timeout_or_client_err attempt=%d/%d symbol=%s backoff=%.1fs err=%s",
                    attempt,
                    self.rest_max_retries,
                    symbol,
                    backoff,
                    e,
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2.0, 20.0)

        if data is None:
            log.warning("candles_rate_limited_out symbol=%s", symbol)
            return []

        bars = parse_candles(data)
        if not bars:
            log.info("candles_empty symbol=%s status=%s", symbol, data.get("s") if isinstance(data, dict) else None)
        return bars[-int(count):] if count > 0 else bars
