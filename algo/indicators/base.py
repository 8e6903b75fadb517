"""增量指标（Indicators）协议。

约定：指标是“单生产者/单消费者”的增量计算器，每根收盘 K 线 `feed` 一次；
`value()` 在预热（warm-up）期间返回 None，而不是 0 或 NaN。
"""

from __future__ import annotations

from typing import Protocol


class Indicator(Protocol):
    """指标协议：`feed(...)` + `value() -> float | None`。"""

    def feed(self, *samples: float) -> None:
        """推入一个新样本（参数形态由具体指标决定）。"""
        ...

    def value(self) -> float | None:
        """当前值；预热期间为 None。"""
        ...


def check_period(period: int, name: str) -> int:
    p = int(period)
    if p <= 0:
        raise ValueError(f"{name} period must be > 0")
    return p
