"""单品种聚合：交易对 + 指标 + 最新 K 线 + 持仓状态 + 入场价。"""

from __future__ import annotations

from typing import Any

from algo.strategy.base import Strategy
from shared.models.models import Candle, PositionState, SymbolPair, TradeSignal


class Instrument:
    """Notes
    -----
    - `update` 用“上一根 K 线”喂指标，所以第一根 K 线只被记录，不喂指标；
    - `evaluate` 是纯函数，不改状态；`apply` 才提交状态迁移；
    - 持仓状态与入场价只在内存中，进程重启即丢失。
    """

    def __init__(self, pair: SymbolPair, strategy: Strategy, step_size: int | None = None):
        self.pair = pair
        self.strategy = strategy
        self.indicators: Any = strategy.build_indicators()
        self.step_size = step_size
        self.candle: Candle | None = None
        self.position = PositionState.FLAT
        self.entry_price: float | None = None

    @property
    def symbol(self) -> str:
        return self.pair.symbol

    @property
    def is_flat(self) -> bool:
        return self.position is PositionState.FLAT

    def update(self, candle: Candle) -> None:
        """推入一根已收盘 K 线。"""
        if self.candle is not None:
            self.indicators.update(candle, self.candle)
        self.candle = candle

    def evaluate(self) -> TradeSignal | None:
        if self.candle is None:
            return None
        return self.strategy.evaluate(self.position, self.candle, self.indicators, self.entry_price)

    def apply(self, signal: TradeSignal) -> None:
        """提交信号：buy 记录入场价（当前收盘价），sell 清空。"""
        if self.candle is None:
            raise RuntimeError(f"{self.symbol}: cannot apply a signal before any candle")
        if signal.side == "buy":
            if not self.is_flat:
                raise ValueError(f"{self.symbol}: buy signal while already in {self.position.value}")
            assert signal.entry is not None
            self.position = signal.entry
            self.entry_price = self.candle.close
        elif signal.side == "sell":
            if self.is_flat:
                raise ValueError(f"{self.symbol}: sell signal while flat")
            self.position = PositionState.FLAT
            self.entry_price = None
        else:
            raise ValueError(f"Unknown signal side: {signal.side}")

    def net_pct(self) -> float | None:
        """当前收盘价相对入场价的涨跌幅（百分比）。"""
        if self.candle is None or not self.entry_price:
            return None
        return (self.candle.close / self.entry_price - 1.0) * 100.0

    def __repr__(self) -> str:
        return f"Instrument({self.symbol}, position={self.position.value}, entry={self.entry_price})"
