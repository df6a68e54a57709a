from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import Signal


def _fmt_dt(dt: datetime, tz=timezone.utc) -> str:
    return dt.astimezone(tz).strftime("%Y-%m-%d %H:%M")


def signal_to_dict(signal: Signal) -> Dict[str, Any]:
    return {
        "pair": signal.symbol,
        "action": signal.action,
        "confidence": signal.confidence,
        "start_time": signal.start_time.isoformat(),
        "end_time": signal.end_time.isoformat(),
        "session": signal.session,
        "signal_id": signal.signal_id,
    }


def format_signal_json(signal: Optional[Signal]) -> str:
    return json.dumps(signal_to_dict(signal) if signal else None, sort_keys=True)


def format_signal(signal: Signal, *, include_breakdown: bool = False) -> str:
    """Multi-line console summary of a signal, times in UTC."""
    lines = [
        f"{signal.symbol} | {signal.action} | Confidence: {signal.confidence}%",
        f"Session: {signal.session}",
        f"Valid: {_fmt_dt(signal.start_time)} -> {signal.end_time.astimezone(timezone.utc):%H:%M} UTC",
    ]
    if include_breakdown and signal.score_breakdown:
        lines.append("Score breakdown:")
        lines.append(signal.score_breakdown)
    return "\n".join(lines)


def format_no_signal(session: str, threshold: int) -> str:
    return f"No signal above {threshold}% in the {session} session this interval."
