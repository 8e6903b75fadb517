"""滚动最大值 / 最小值。

记录当前极值所在下标；只有当极值所在的槽位被一个“不更优”的值覆盖时才全量重扫，
其余情况 O(1)。未写入的槽位保存 ∓inf 哨兵，因此写满前的极值即已输入样本的极值。
"""

from __future__ import annotations

import math

from algo.indicators.base import check_period


class _RollingExtreme:
    _sentinel: float

    def __init__(self, period: int):
        self.period = check_period(period, type(self).__name__)
        self._values = [self._sentinel] * self.period
        self._extreme_index = 0
        self._cursor = 0
        self._count = 0

    def _better(self, a: float, b: float) -> bool:
        raise NotImplementedError

    def _rescan(self) -> int:
        best = self._sentinel
        index = 0
        for i, v in enumerate(self._values):
            if self._better(v, best):
                best = v
                index = i
        return index

    def feed(self, sample: float) -> None:
        self._values[self._cursor] = float(sample)
        if self._better(self._values[self._cursor], self._values[self._extreme_index]):
            self._extreme_index = self._cursor
        elif self._extreme_index == self._cursor:
            self._extreme_index = self._rescan()
        self._cursor = self._cursor + 1 if self._cursor + 1 < self.period else 0
        self._count += 1

    def value(self) -> float | None:
        if self._count == 0:
            return None
        return self._values[self._extreme_index]

    @property
    def count(self) -> int:
        return self._count


class RollingMax(_RollingExtreme):
    _sentinel = -math.inf

    def _better(self, a: float, b: float) -> bool:
        return a > b


class RollingMin(_RollingExtreme):
    _sentinel = math.inf

    def _better(self, a: float, b: float) -> bool:
        return a < b
