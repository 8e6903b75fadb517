"""TD Sequential 结构计数（setup 阶段）。

维护最近 5 根 K 线的环形窗口，把当前收盘价与 4 根之前的收盘价比较：

- 严格更低：下跌 setup（计数为负，-1 … -9）；
- 不低于（含相等）：上涨 setup（计数为正，1 … 9）。

方向反转时计数从 ±1 重新开始；到达 ±9 后的下一根同向 K 线同样从 ±1 开始。
计数到达 ±9 的那一根 K 线上评估一次 "perfect"：

- 下跌 setup：第 8 或第 9 根的最低价同时低于第 6、7 根的最低价；
- 上涨 setup：第 8 或第 9 根的最高价同时高于第 6、7 根的最高价。
"""

from __future__ import annotations

import math

LOOKBACK = 5
SETUP_LENGTH = 9


class TdSequential:
    def __init__(self):
        self._highs = [math.nan] * LOOKBACK
        self._lows = [math.nan] * LOOKBACK
        self._closes = [math.nan] * LOOKBACK
        self._index = 0
        self._filled = 0
        self.setup_count = 0
        self.perfect = False
        # 当前下跌 setup 内的最高价 / 上涨 setup 内的最低价
        self.resistance: float | None = None
        self.support: float | None = None

    def feed(self, high: float, low: float, close: float) -> None:
        i = self._index
        self._highs[i] = float(high)
        self._lows[i] = float(low)
        self._closes[i] = float(close)
        self._index = (i + 1) % LOOKBACK

        if self._filled < LOOKBACK - 1:
            self._filled += 1
            return

        # 环形窗口里 i 之后的一个槽位就是 4 根之前的 K 线
        prev = (i + 1) % LOOKBACK
        if abs(self.setup_count) == SETUP_LENGTH:
            self.setup_count = 0

        if self._closes[prev] > self._closes[i]:
            if self.setup_count < 0:
                self.resistance = max(self.resistance, self._highs[i])
                self.setup_count -= 1
            else:
                self.resistance = self._highs[i]
                self.setup_count = -1
        else:
            if self.setup_count > 0:
                self.support = min(self.support, self._lows[i])
                self.setup_count += 1
            else:
                self.support = self._lows[i]
                self.setup_count = 1

        if abs(self.setup_count) == SETUP_LENGTH:
            self.perfect = self._evaluate_perfect(prev, i)

    def _evaluate_perfect(self, prev: int, i: int) -> bool:
        # 第 6/7/8 根依次位于 4 根前那根之后
        sixth, seventh, eighth = (prev + 1) % LOOKBACK, (prev + 2) % LOOKBACK, (prev + 3) % LOOKBACK
        if self.setup_count < 0:
            lows = self._lows
            return (lows[eighth] < lows[sixth] and lows[eighth] < lows[seventh]) or (
                lows[i] < lows[sixth] and lows[i] < lows[seventh]
            )
        highs = self._highs
        return (highs[eighth] > highs[sixth] and highs[eighth] > highs[seventh]) or (
            highs[i] > highs[sixth] and highs[i] > highs[seventh]
        )

    def buy_perfect(self) -> bool:
        """下跌 setup 刚好完成 9 根且为 perfect。"""
        return self.perfect and self.setup_count == -SETUP_LENGTH

    def sell_perfect(self) -> bool:
        """上涨 setup 刚好完成 9 根且为 perfect。"""
        return self.perfect and self.setup_count == SETUP_LENGTH

    def value(self) -> float | None:
        return float(self.setup_count)
