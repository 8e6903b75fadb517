"""真实波幅（TR）与平均真实波幅（ATR，Wilder 版本）。"""

from __future__ import annotations

from algo.indicators.base import check_period


def true_range(high: float, low: float, prev_close: float) -> float:
    """TR = max(high, prev_close) - min(low, prev_close)。"""
    return max(high, prev_close) - min(low, prev_close)


class Atr:
    """ATR：前 P 个 TR 求平均作为种子，之后 `(atr * (P-1) + tr) / P`。

    调用方需保证存在上一根 K 线（prev_close）。
    """

    def __init__(self, period: int):
        self.period = check_period(period, "Atr")
        self._count = 0
        self._current = 0.0
        self._value: float | None = None

    def feed(self, high: float, low: float, prev_close: float) -> None:
        tr = true_range(high, low, prev_close)
        if self._count < self.period:
            self._current += tr
            self._count += 1
            if self._count == self.period:
                self._current /= self.period
                self._value = self._current
            return
        self._current = (self._current * (self.period - 1) + tr) / self.period
        self._value = self._current

    def value(self) -> float | None:
        return self._value
