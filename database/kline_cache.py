"""回放用 K 线缓存（按 品种 / 起始日期 / 周期 落盘）。

缓存文件保存交易所原始响应字节的直接拼接（`[[...]][[...]]`），
命中时直接读取，`market_data.parser.parse_candles` 可以一次性解析。
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from market_data.interval import Interval
from market_data.parser import parse_candles
from shared.models.models import CandleSeries
from utils.logging import setup_logger

PAGE_LIMIT = 1000

_LOGGER = setup_logger("kline-cache")


class KlineSource(Protocol):
    def get_klines(
        self,
        symbol: str,
        interval: Interval | str,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> bytes:
        ...


class KlineCache:
    """Parameters
    ----------
    data_dir:
        缓存目录（不存在会自动创建）。
    source:
        缓存未命中时的数据来源（通常是 `BinanceClient`）。
    """

    def __init__(self, data_dir: str | Path, source: KlineSource):
        self.data_dir = Path(data_dir)
        self.source = source

    def path_for(self, symbol: str, start_ms: int, interval: Interval) -> Path:
        day = datetime.fromtimestamp(start_ms / 1000, tz=timezone.utc).date()
        return self.data_dir / f"{symbol}_{day.isoformat()}_{interval}.txt"

    def fetch_raw(self, symbol: str, interval: Interval, start_ms: int, end_ms: int) -> bytes:
        """预热页（start 之前最多 1000 根）+ ⌈count/1000⌉ 个正式页。"""
        step = interval.to_millis()
        chunks = [
            self.source.get_klines(symbol, interval, end_time=start_ms - step, limit=PAGE_LIMIT)
        ]
        count = max(0, (end_ms - start_ms) // step)
        pages = math.ceil(count / PAGE_LIMIT)
        for i in range(pages):
            chunks.append(
                self.source.get_klines(
                    symbol,
                    interval,
                    start_time=start_ms + i * step * PAGE_LIMIT,
                    end_time=end_ms,
                    limit=PAGE_LIMIT,
                )
            )
        return b"".join(chunks)

    def load_raw(self, symbol: str, interval: Interval, start_ms: int, end_ms: int) -> bytes:
        path = self.path_for(symbol, start_ms, interval)
        if path.exists():
            _LOGGER.info("Kline cache hit: %s", path)
            return path.read_bytes()

        _LOGGER.info("Kline cache miss: %s, downloading", path)
        raw = self.fetch_raw(symbol, interval, start_ms, end_ms)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
        return raw

    def load(self, symbol: str, interval: Interval, start_ms: int, end_ms: int) -> CandleSeries:
        return parse_candles(self.load_raw(symbol, interval, start_ms, end_ms))
