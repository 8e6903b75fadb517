from __future__ import annotations

from typing import Any

import pytest

from database.kline_cache import PAGE_LIMIT, KlineCache
from engine.base_engine import parse_date_ms
from engine.replay_engine import TRADE_COLUMNS, ReplayEngine
from market_data.interval import Interval
from market_data.parser import format_candles
from shared.config.schema import BacktestConfig, MainConfig
from shared.models.models import Candle, CandleSeries

HOUR = 3_600_000
START = "2021-01-15"
START_MS = parse_date_ms(START)


def _candle(close: float, t: int) -> Candle:
    return Candle(open_time=t, open=close, high=close + 1, low=close - 1, close=close)


def _payload(candles: list[Candle]) -> bytes:
    series = CandleSeries()
    for c in candles:
        series.append(c)
    return format_candles(series, HOUR)


class _FakeSource:
    def __init__(self, warm: list[Candle], pages: list[list[Candle]]):
        self.warm = warm
        self.pages = list(pages)
        self.calls: list[dict[str, Any]] = []

    def get_klines(self, symbol, interval, start_time=None, end_time=None, limit=None) -> bytes:
        self.calls.append({"symbol": symbol, "start_time": start_time, "end_time": end_time, "limit": limit})
        if start_time is None:
            return _payload(self.warm)
        return _payload(self.pages.pop(0))


def _warm() -> list[Candle]:
    n = 60
    t0 = START_MS - n * HOUR
    return [_candle(101.0 if i % 2 else 99.0, t0 + i * HOUR) for i in range(n)]


def _cfg(tmp_path, end: str = "2021-01-16") -> MainConfig:
    return MainConfig(
        mode="backtest",
        interval="1h",
        backtest=BacktestConfig(
            base="BNB", quote="USDT", start=START, end=end, data_dir=str(tmp_path), initial_quote=100.0
        ),
    )


def test_replay_roi_and_trades(tmp_path):
    warm = _warm()
    # 与预热最后一根重复的 K 线会被丢弃
    page = [warm[-1], _candle(80.0, START_MS), _candle(79.0, START_MS + HOUR), _candle(101.0, START_MS + 2 * HOUR)]
    source = _FakeSource(warm, [page])

    result = ReplayEngine(cfg_obj=_cfg(tmp_path), client=source).run()
    summary = result.summary

    assert summary["symbol"] == "BNBUSDT"
    assert summary["candles"] == 63
    assert summary["trades"] == 2
    assert summary["roi_pct"] == pytest.approx(26.25)
    assert summary["final_value"] == pytest.approx(126.25)
    assert summary["position"] == "flat"

    trades = result.artifacts["trades"]
    assert list(trades.columns) == TRADE_COLUMNS
    assert list(trades["side"]) == ["buy", "sell"]
    assert list(trades["entry"]) == ["dip", ""]
    assert trades["net_pct"].iloc[1] == pytest.approx(26.25)
    assert len(result.artifacts["candles"]) == 64


def test_replay_open_position_is_marked_to_last_close(tmp_path):
    warm = _warm()
    page = [_candle(80.0, START_MS), _candle(90.0, START_MS + HOUR)]
    source = _FakeSource(warm, [page])

    summary = ReplayEngine(cfg_obj=_cfg(tmp_path), client=source).run().summary

    assert summary["trades"] == 1
    assert summary["position"] == "dip"
    assert summary["base_balance"] == pytest.approx(1.25)
    assert summary["roi_pct"] == pytest.approx(12.5)


def test_replay_ignores_candles_after_end(tmp_path):
    warm = _warm()
    end_ms = parse_date_ms("2021-01-16")
    page = [_candle(99.0, START_MS), _candle(80.0, end_ms + HOUR)]
    source = _FakeSource(warm, [page])

    summary = ReplayEngine(cfg_obj=_cfg(tmp_path), client=source).run().summary
    assert summary["trades"] == 0
    assert summary["candles"] == 61
    assert summary["roi_pct"] == pytest.approx(0.0)


def test_replay_rejects_bad_window(tmp_path):
    with pytest.raises(ValueError):
        ReplayEngine(cfg_obj=_cfg(tmp_path, end=START), client=_FakeSource([], [])).run()
    with pytest.raises(ValueError):
        ReplayEngine(cfg_obj=MainConfig(mode="backtest"), client=_FakeSource([], [])).run()


def test_kline_cache_miss_downloads_pages_then_hits(tmp_path):
    interval = Interval.parse("1h")
    end_ms = START_MS + 2500 * HOUR
    source = _FakeSource(_warm(), [[_candle(1.0, START_MS)], [], []])
    cache = KlineCache(tmp_path / "klines", source)

    path = cache.path_for("BNBUSDT", START_MS, interval)
    assert path.name == "BNBUSDT_2021-01-15_1h.txt"

    series = cache.load("BNBUSDT", interval, START_MS, end_ms)
    assert path.exists()
    assert len(series) == 61

    assert source.calls[0] == {"symbol": "BNBUSDT", "start_time": None, "end_time": START_MS - HOUR, "limit": PAGE_LIMIT}
    page_starts = [c["start_time"] for c in source.calls[1:]]
    assert page_starts == [START_MS, START_MS + PAGE_LIMIT * HOUR, START_MS + 2 * PAGE_LIMIT * HOUR]
    assert all(c["end_time"] == end_ms for c in source.calls[1:])

    calls_before = len(source.calls)
    again = cache.load("BNBUSDT", interval, START_MS, end_ms)
    assert len(source.calls) == calls_before
    assert again.open_time == series.open_time
