"""行情数据模块（market_data）。

该包聚合：
- K 线周期模型（`interval`）
- 响应字节扫描器（`scanner`），按 key 或 key/value 对取单个字段
- K 线数组解析（`parser`），输出列式 `CandleSeries`
"""

from market_data.interval import Interval, IntervalUnit
from market_data.parser import format_candles, parse_candle, parse_candles
from market_data.scanner import (
    FieldScanner,
    GrammarError,
    UnexpectedEndOfInput,
    ValueKind,
    parse_error_document,
)

__all__ = [
    "Interval",
    "IntervalUnit",
    "FieldScanner",
    "GrammarError",
    "UnexpectedEndOfInput",
    "ValueKind",
    "parse_error_document",
    "parse_candle",
    "parse_candles",
    "format_candles",
]
