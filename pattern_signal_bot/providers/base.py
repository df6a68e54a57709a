from __future__ import annotations

from typing import List, Protocol

from ..models import PriceBar


class PriceSeriesProvider(Protocol):
    async def fetch_series(self, symbol: str, count: int) -> List[PriceBar]:
        """Most recent ``count`` bars, oldest first. An empty list means no data."""
        ...

    async def close(self) -> None:
        ...
