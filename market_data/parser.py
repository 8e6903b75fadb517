"""K 线数组解析。

交易所 K 线响应是“定长数组的数组”，按固定列位置取值：

    [[1499040000000, "0.0163", "0.8000", "0.0157", "0.0157", "148976.11", 1499644799999,
      "2434.19", 308, "1756.87", "28.46", "0"], ...]

列 0~4 为 open_time/open/high/low/close，列 5 为成交量，列 8 为成交笔数。
多个响应直接拼接（`[[...]][[...]]`，回放缓存文件就是这样写的）同样可以解析。
"""

from __future__ import annotations

import re
from typing import Iterator

from market_data.scanner import GrammarError, UnexpectedEndOfInput
from shared.models.models import Candle, CandleSeries

_NUMBER = re.compile(rb"^-?\d+(?:\.\d*)?(?:[eE][-+]?\d+)?$")

_PRICE_COLUMNS = 5
_VOLUME_COLUMN = 5
_TRADE_COUNT_COLUMN = 8


def _iter_rows(payload: bytes) -> Iterator[list[bytes]]:
    """逐个产出最内层数组的字段列表（原始 token，已去掉空白与引号）。"""
    row_start: int | None = None
    for i, b in enumerate(payload):
        if b == 0x5B:  # [
            row_start = i + 1
        elif b == 0x5D and row_start is not None:  # ]
            row = payload[row_start:i].strip()
            row_start = None
            if row:
                yield [field.strip().strip(b'"') for field in row.split(b",")]


def _number(token: bytes, column: int) -> float:
    if not _NUMBER.match(token):
        raise GrammarError(f"non-numeric token {token!r} in column {column}")
    return float(token)


def _integer(token: bytes, column: int) -> int:
    value = _number(token, column)
    if not value.is_integer():
        raise GrammarError(f"expected an integer in column {column}, found {token!r}")
    return int(value)


def _candle_from_row(fields: list[bytes]) -> Candle:
    if len(fields) < _PRICE_COLUMNS:
        raise GrammarError(f"candle row has {len(fields)} columns, expected at least {_PRICE_COLUMNS}")
    return Candle(
        open_time=_integer(fields[0], 0),
        open=_number(fields[1], 1),
        high=_number(fields[2], 2),
        low=_number(fields[3], 3),
        close=_number(fields[4], 4),
    )


def parse_candle(payload: bytes) -> Candle:
    """解析单根 K 线（`limit=1` 时外层数组可有可无）。"""
    for fields in _iter_rows(payload):
        return _candle_from_row(fields)
    raise UnexpectedEndOfInput("no candle array found in payload")


def parse_candles(payload: bytes) -> CandleSeries:
    """解析 K 线数组为列式序列；空数组返回空序列。"""
    series = CandleSeries()
    for fields in _iter_rows(payload):
        candle = _candle_from_row(fields)
        volume = _number(fields[_VOLUME_COLUMN], _VOLUME_COLUMN) if len(fields) > _VOLUME_COLUMN else 0.0
        trades = (
            _integer(fields[_TRADE_COUNT_COLUMN], _TRADE_COUNT_COLUMN)
            if len(fields) > _TRADE_COUNT_COLUMN
            else 0
        )
        series.append(candle, volume=volume, trade_count=trades)
    return series


def format_candles(series: CandleSeries, interval_ms: int | None = None) -> bytes:
    """把列式序列编码回交易所的嵌套数组文本。

    价格按 `repr` 输出（可无损还原）；close_time 在给出 `interval_ms` 时为
    `open_time + interval_ms - 1`，否则等于 open_time。
    """
    rows = []
    for i in range(len(series)):
        open_time = series.open_time[i]
        close_time = open_time + interval_ms - 1 if interval_ms else open_time
        rows.append(
            "[{ot},\"{o!r}\",\"{h!r}\",\"{l!r}\",\"{c!r}\",\"{v!r}\",{ct},\"0\",{n},\"0\",\"0\",\"0\"]".format(
                ot=open_time,
                o=series.open[i],
                h=series.high[i],
                l=series.low[i],
                c=series.close[i],
                v=series.volume[i],
                ct=close_time,
                n=series.trade_count[i],
            )
        )
    return ("[" + ",".join(rows) + "]").encode()
