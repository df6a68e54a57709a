import pytest

from pattern_signal_bot.config import default_config, load_config, validate_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("FINNHUB_API_KEY", "SIGNAL_THRESHOLD", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg.search.threshold == 65
    assert cfg.search.max_attempts == 50
    assert cfg.search.max_qualifying == 3
    assert cfg.search.interval_minutes == 5
    assert cfg.indicators.rsi_period == 14
    assert (cfg.indicators.macd_fast, cfg.indicators.macd_slow, cfg.indicators.macd_signal) == (12, 26, 9)
    assert cfg.indicators.bb_period == 20
    assert cfg.provider.type == "simulator"
    assert [s.name for s in cfg.sessions] == ["Asian", "London", "New York"]


def test_yaml_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "app:\n"
        "  log_level: DEBUG\n"
        "search:\n"
        "  threshold: 72\n"
        "  seed: 5\n"
        "indicators:\n"
        "  rsi_period: 10\n"
        "sessions:\n"
        "  - name: All day\n"
        "    start_hour: 0\n"
        "    end_hour: 24\n"
        "    symbols: [EUR/USD, GBP/USD]\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.app.log_level == "DEBUG"
    assert cfg.search.threshold == 72
    assert cfg.search.seed == 5
    assert cfg.indicators.rsi_period == 10
    assert cfg.indicators.macd_slow == 26
    assert len(cfg.sessions) == 1
    assert cfg.sessions[0].symbols == ["EUR/USD", "GBP/USD"]


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("provider:\n  type: finnhub\n", encoding="utf-8")
    monkeypatch.setenv("FINNHUB_API_KEY", "k-123")
    monkeypatch.setenv("SIGNAL_THRESHOLD", "80")
    cfg = load_config(str(path))
    assert cfg.provider.api_key == "k-123"
    assert cfg.search.threshold == 80


def test_bad_env_threshold_keeps_config_value(monkeypatch):
    monkeypatch.setenv("SIGNAL_THRESHOLD", "high")
    assert load_config(None).search.threshold == 65


def test_finnhub_without_key_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("provider:\n  type: finnhub\n", encoding="utf-8")
    with pytest.raises(ValueError, match="api_key"):
        load_config(str(path))


def test_validation_errors():
    cfg = default_config()
    cfg.search.threshold = 120
    with pytest.raises(ValueError, match="threshold"):
        validate_config(cfg)

    cfg = default_config()
    cfg.search.interval_minutes = 7
    with pytest.raises(ValueError, match="interval_minutes"):
        validate_config(cfg)

    cfg = default_config()
    cfg.provider.type = "binance"
    with pytest.raises(ValueError, match="provider.type"):
        validate_config(cfg)

    cfg = default_config()
    cfg.sessions = []
    with pytest.raises(ValueError, match="session"):
        validate_config(cfg)


def test_min_bars_must_cover_indicator_windows():
    cfg = default_config()
    cfg.indicators.min_bars = 10
    with pytest.raises(ValueError, match="min_bars must be at least 20"):
        validate_config(cfg)

    cfg = default_config()
    cfg.indicators.bb_period = 40
    with pytest.raises(ValueError, match="min_bars must be at least 40"):
        validate_config(cfg)

    cfg.indicators.min_bars = 40
    validate_config(cfg)


def test_non_positive_periods_rejected():
    cfg = default_config()
    cfg.indicators.rsi_period = 0
    with pytest.raises(ValueError, match="rsi_period"):
        validate_config(cfg)


def test_min_bars_checked_on_load(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("indicators:\n  min_bars: 15\n", encoding="utf-8")
    with pytest.raises(ValueError, match="min_bars"):
        load_config(str(path))
