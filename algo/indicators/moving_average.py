"""简单移动平均（SMA）与总体标准差。

两者都使用构造时定长的环形缓冲区；是否“已写满一轮”由 `_filled` 标记判断，
不依赖缓冲区内容（哨兵值）。
"""

from __future__ import annotations

import math

from algo.indicators.base import check_period


class _RingBuffer:
    """定长环形缓冲区（写游标 + 写满标记）。"""

    __slots__ = ("period", "data", "index", "filled")

    def __init__(self, period: int):
        self.period = period
        self.data = [0.0] * period
        self.index = 0
        self.filled = False

    def push(self, sample: float) -> None:
        self.data[self.index] = float(sample)
        self.index += 1
        if self.index == self.period:
            self.index = 0
            self.filled = True

    def mean(self) -> float:
        return math.fsum(self.data) / self.period


class MovingAverage:
    """简单移动平均。

    前 N-1 次 feed 返回 None；第 N 次起为缓冲区算术平均。
    """

    def __init__(self, period: int):
        self.period = check_period(period, "MovingAverage")
        self._buf = _RingBuffer(self.period)
        self._value: float | None = None

    def feed(self, sample: float) -> None:
        self._buf.push(sample)
        if self._buf.filled:
            self._value = self._buf.mean()

    def value(self) -> float | None:
        return self._value

    def is_ready(self) -> bool:
        return self._value is not None


class StandardDeviation:
    """总体标准差（除以 N，不是 N-1）。

    写满一轮后每次 feed 全量重算（O(N)），N 一般很小。
    """

    def __init__(self, period: int):
        self.period = check_period(period, "StandardDeviation")
        self._buf = _RingBuffer(self.period)
        self._value: float | None = None

    def feed(self, sample: float) -> None:
        self._buf.push(sample)
        if not self._buf.filled:
            return
        mean = self._buf.mean()
        variance = math.fsum((v - mean) ** 2 for v in self._buf.data) / self.period
        self._value = math.sqrt(variance)

    def value(self) -> float | None:
        return self._value

    def is_ready(self) -> bool:
        return self._value is not None
