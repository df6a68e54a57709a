from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .models import Session

DEFAULT_SESSION_PAIRS: Dict[str, List[str]] = {
    "Asian": ["USD/JPY", "AUD/JPY", "NZD/JPY", "AUD/USD", "NZD/USD"],
    "London": ["EUR/USD", "GBP/USD", "EUR/GBP", "EUR/JPY", "GBP/JPY"],
    "New York": ["USD/CAD", "EUR/USD", "GBP/USD", "USD/CHF", "AUD/USD"],
}


@dataclass
class SessionWindow:
    name: str
    start_hour: int  # inclusive, UTC
    end_hour: int  # exclusive, UTC
    symbols: List[str]

    def contains(self, hour: int) -> bool:
        s = self.start_hour
        e = self.end_hour
        if s == e:
            return True
        if s < e:
            return s <= hour < e
        # Cross-midnight window (e.g., 22 -> 6)
        return hour >= s or hour < e

    def to_session(self) -> Session:
        return Session(name=self.name, symbols=tuple(self.symbols))


def default_sessions() -> List[SessionWindow]:
    return [
        SessionWindow("Asian", 0, 8, list(DEFAULT_SESSION_PAIRS["Asian"])),
        SessionWindow("London", 8, 16, list(DEFAULT_SESSION_PAIRS["London"])),
        SessionWindow("New York", 16, 24, list(DEFAULT_SESSION_PAIRS["New York"])),
    ]


def session_for(now: Optional[datetime] = None, windows: Optional[Sequence[SessionWindow]] = None) -> Session:
    """Active session for the UTC hour of ``now``. The last window is the fallback."""
    windows = list(windows) if windows else default_sessions()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    for w in windows:
        if w.contains(now.hour):
            return w.to_session()
    return windows[-1].to_session()


def all_symbols(windows: Optional[Sequence[SessionWindow]] = None) -> List[str]:
    out: List[str] = []
    for w in windows or default_sessions():
        for sym in w.symbols:
            if sym not in out:
                out.append(sym)
    return out
