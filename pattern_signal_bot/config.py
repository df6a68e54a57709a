from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import os
import yaml

from .sessions import SessionWindow, default_sessions


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


@dataclass
class IndicatorConfig:
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    stoch_period: int = 14
    bb_period: int = 20
    bb_mult: float = 2.0
    atr_period: int = 14
    min_bars: int = 30

    # Multi-timeframe confirmation
    mtf_short_window: int = 20
    mtf_full_window: int = 50
    mtf_min_short_bars: int = 10

    def signature(self) -> Dict[str, object]:
        return {
            "rsi_period": self.rsi_period,
            "macd_fast": self.macd_fast,
            "macd_slow": self.macd_slow,
            "macd_signal": self.macd_signal,
            "stoch_period": self.stoch_period,
            "bb_period": self.bb_period,
            "bb_mult": self.bb_mult,
            "atr_period": self.atr_period,
            "min_bars": self.min_bars,
            "mtf_short_window": self.mtf_short_window,
            "mtf_full_window": self.mtf_full_window,
            "mtf_min_short_bars": self.mtf_min_short_bars,
        }


@dataclass
class SearchConfig:
    threshold: int = 65
    max_attempts: int = 50
    max_qualifying: int = 3
    history_bars: int = 50
    interval_minutes: int = 5
    seed: Optional[int] = None


@dataclass
class ProviderConfig:
    type: str = "simulator"  # simulator | finnhub
    api_key: str = ""
    base_url: str = "https://finnhub.io/api"
    resolution: str = "5"
    rest_timeout_s: int = 20
    rest_max_retries: int = 4
    seed: Optional[int] = None


@dataclass
class AppConfig:
    name: str = "Pattern Signal Bot"
    log_level: str = "INFO"
    dedupe: bool = True


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    indicators: IndicatorConfig
    search: SearchConfig
    sessions: List[SessionWindow]


def default_config() -> Config:
    return Config(
        app=AppConfig(),
        provider=ProviderConfig(),
        indicators=IndicatorConfig(),
        search=SearchConfig(),
        sessions=default_sessions(),
    )


def _parse_sessions(raw: Any) -> List[SessionWindow]:
    if not raw:
        return default_sessions()
    out = []
    for item in raw:
        out.append(SessionWindow(
            name=str(item["name"]),
            start_hour=int(item["start_hour"]),
            end_hour=int(item["end_hour"]),
            symbols=[str(s) for s in (item.get("symbols") or [])],
        ))
    return out


def validate_config(cfg: Config) -> None:
    errs = []
    if not 0 <= int(cfg.search.threshold) <= 99:
        errs.append(f"search.threshold must be within 0..99, got {cfg.search.threshold}")
    if int(cfg.search.max_attempts) <= 0:
        errs.append("search.max_attempts must be positive")
    if int(cfg.search.max_qualifying) <= 0:
        errs.append("search.max_qualifying must be positive")
    if int(cfg.search.interval_minutes) <= 0 or 60 % int(cfg.search.interval_minutes) != 0:
        errs.append("search.interval_minutes must divide 60")
    ind = cfg.indicators
    for name in ("rsi_period", "macd_fast", "macd_slow", "macd_signal", "stoch_period", "bb_period", "atr_period"):
        if int(getattr(ind, name)) <= 0:
            errs.append(f"indicators.{name} must be positive")
    # sma20 and the Bollinger window need that many closes once scoring starts
    need = max(20, int(ind.bb_period), int(ind.stoch_period))
    if int(ind.min_bars) < need:
        errs.append(f"indicators.min_bars must be at least {need}, got {ind.min_bars}")
    if int(ind.mtf_min_short_bars) <= 0:
        errs.append("indicators.mtf_min_short_bars must be positive")
    if cfg.provider.type not in ("simulator", "finnhub"):
        errs.append(f"provider.type must be simulator or finnhub, got {cfg.provider.type!r}")
    if cfg.provider.type == "finnhub" and not cfg.provider.api_key:
        errs.append("provider.api_key (or FINNHUB_API_KEY) is required for finnhub")
    if not cfg.sessions:
        errs.append("at least one session is required")
    for s in cfg.sessions:
        if not s.symbols:
            errs.append(f"session {s.name!r} has no symbols")
        if not (0 <= s.start_hour <= 24 and 0 <= s.end_hour <= 24):
            errs.append(f"session {s.name!r} hours must be within 0..24")
    if errs:
        raise ValueError("Invalid config: " + "; ".join(errs))


def load_config(path: Optional[str] = None) -> Config:
    raw: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    cfg = Config(
        app=AppConfig(**(raw.get("app") or {})),
        provider=ProviderConfig(**(raw.get("provider") or {})),
        indicators=IndicatorConfig(**(raw.get("indicators") or {})),
        search=SearchConfig(**(raw.get("search") or {})),
        sessions=_parse_sessions(raw.get("sessions")),
    )

    # env overrides (useful on servers)
    cfg.provider.api_key = _env_override(cfg.provider.api_key, "FINNHUB_API_KEY")
    cfg.search.threshold = _env_override(cfg.search.threshold, "SIGNAL_THRESHOLD")
    cfg.app.log_level = _env_override(cfg.app.log_level, "LOG_LEVEL")

    validate_config(cfg)
    return cfg
