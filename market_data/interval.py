"""K 线周期（interval）模型：交易所字符串 <-> 毫秒时长。"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from utils.logging import setup_logger

_LOGGER = setup_logger("interval")

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS

_PATTERN = re.compile(r"^(\d+)([mhdwM])$")


class IntervalUnit(Enum):
    MINUTE = "m"
    HOUR = "h"
    DAY = "d"
    WEEK = "w"
    MONTH = "M"


@dataclass(frozen=True)
class Interval:
    """K 线周期。

    minute/hour/day 支持倍数；week/month 固定为 1。
    """

    unit: IntervalUnit
    multiplier: int = 1

    def __post_init__(self):
        if self.multiplier <= 0:
            raise ValueError("interval multiplier must be > 0")
        if self.unit in {IntervalUnit.WEEK, IntervalUnit.MONTH} and self.multiplier != 1:
            raise ValueError(f"{self.unit.name.lower()} interval only supports multiplier 1")

    @classmethod
    def parse(cls, text: str) -> "Interval":
        """解析 "1m"/"15m"/"1h"/"4h"/"1d"/"1w"/"1M"。"""
        m = _PATTERN.match(str(text).strip())
        if not m:
            raise ValueError(f"Invalid interval: {text!r}")
        return cls(unit=IntervalUnit(m.group(2)), multiplier=int(m.group(1)))

    def to_millis(self) -> int:
        if self.unit is IntervalUnit.MINUTE:
            return self.multiplier * _MINUTE_MS
        if self.unit is IntervalUnit.HOUR:
            return self.multiplier * _HOUR_MS
        if self.unit is IntervalUnit.DAY:
            return self.multiplier * _DAY_MS
        if self.unit is IntervalUnit.WEEK:
            return 7 * _DAY_MS
        # 沿用既有常量：月 = 30 小时（与日历月不一致，待确认后再修正）
        _LOGGER.warning("Month interval uses the legacy 30-hour duration constant.")
        return 30 * _HOUR_MS

    def __str__(self) -> str:
        return f"{self.multiplier}{self.unit.value}"
