"""相对强弱（RSI）与随机 RSI（StochRSI）。"""

from __future__ import annotations

import sys

from algo.indicators.base import check_period
from algo.indicators.ema import Ema
from algo.indicators.extrema import RollingMax, RollingMin
from algo.indicators.moving_average import MovingAverage

_EPSILON = sys.float_info.epsilon


class Rsi:
    """Wilder 平滑的 RSI。

    |close - prev_close| < 机器精度时视为“没有变化”（上涨、下跌都记 0）。
    上涨均值与下跌均值都为 0 时返回 50；仅下跌均值为 0 时返回 100。
    """

    def __init__(self, period: int = 14):
        self.period = check_period(period, "Rsi")
        self._up = Ema.wilder(self.period)
        self._down = Ema.wilder(self.period)
        self._value: float | None = None

    def feed(self, close: float, prev_close: float) -> None:
        change = close - prev_close
        if -_EPSILON < change < _EPSILON:
            up, down = 0.0, 0.0
        elif change > 0:
            up, down = change, 0.0
        else:
            up, down = 0.0, -change
        self._up.feed(up)
        self._down.feed(down)

        avg_up, avg_down = self._up.value(), self._down.value()
        if avg_up is None or avg_down is None:
            return
        if avg_down == 0.0:
            self._value = 50.0 if avg_up == 0.0 else 100.0
            return
        rs = avg_up / avg_down
        self._value = 100.0 - 100.0 / (1.0 + rs)

    def value(self) -> float | None:
        return self._value


class StochRsi:
    """RSI 在 `period` 窗口内的相对位置（0~100），再做 3 期简单平均。

    窗口内最大值等于最小值时无法归一化，跳过该样本。
    """

    def __init__(self, period: int = 14, smoothing: int = 3):
        self.period = check_period(period, "StochRsi")
        self._rsi = Rsi(self.period)
        self._max = RollingMax(self.period)
        self._min = RollingMin(self.period)
        self._smooth = MovingAverage(smoothing)

    def feed(self, close: float, prev_close: float) -> None:
        self._rsi.feed(close, prev_close)
        rsi = self._rsi.value()
        if rsi is None:
            return
        self._max.feed(rsi)
        self._min.feed(rsi)
        hi, lo = self._max.value(), self._min.value()
        if hi is None or lo is None or hi == lo:
            return
        self._smooth.feed(100.0 * (rsi - lo) / (hi - lo))

    def rsi(self) -> float | None:
        return self._rsi.value()

    def value(self) -> float | None:
        return self._smooth.value()
