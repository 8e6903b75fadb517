from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from shared.models.models import Candle, PositionState, TradeSignal


class Strategy(ABC):
    """K 线收盘驱动的信号策略。

    策略本身无状态：指标状态由 `build_indicators()` 创建、挂在各品种上，
    持仓状态与入场价由 `Instrument` 维护。
    """

    @abstractmethod
    def build_indicators(self) -> Any:
        """为单个品种创建一套指标（需提供 `update(candle, prev)`）。"""
        ...

    @abstractmethod
    def evaluate(
        self,
        position: PositionState,
        candle: Candle,
        indicators: Any,
        entry_price: float | None,
    ) -> TradeSignal | None:
        """
        根据当前持仓状态与指标输出 0~1 个信号；指标未就绪时返回 None。
        """
        ...
