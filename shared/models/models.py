"""核心数据结构：Candle/CandleSeries/PositionState/TradeSignal/Asset。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

import pandas as pd


@dataclass(frozen=True)
class Candle:
    """K 线（单根，毫秒时间戳）。"""
    open_time: int
    open: float
    high: float
    low: float
    close: float


@dataclass
class CandleSeries:
    """列式 K 线序列（每个字段一列，按 open_time 升序）。"""
    open_time: list[int] = field(default_factory=list)
    open: list[float] = field(default_factory=list)
    high: list[float] = field(default_factory=list)
    low: list[float] = field(default_factory=list)
    close: list[float] = field(default_factory=list)
    volume: list[float] = field(default_factory=list)
    trade_count: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.open_time)

    def append(self, candle: Candle, volume: float = 0.0, trade_count: int = 0) -> None:
        self.open_time.append(candle.open_time)
        self.open.append(candle.open)
        self.high.append(candle.high)
        self.low.append(candle.low)
        self.close.append(candle.close)
        self.volume.append(volume)
        self.trade_count.append(trade_count)

    def at(self, i: int) -> Candle:
        return Candle(
            open_time=self.open_time[i],
            open=self.open[i],
            high=self.high[i],
            low=self.low[i],
            close=self.close[i],
        )

    def last(self) -> Candle:
        """最后一根 K 线；空序列抛 IndexError。"""
        if not self.open_time:
            raise IndexError("empty candle series")
        return self.at(-1)

    def candles(self) -> Iterator[Candle]:
        for i in range(len(self)):
            yield self.at(i)

    def to_frame(self) -> pd.DataFrame:
        """转换为 DataFrame（open_time 转为 UTC 时间列 `ts`）。"""
        df = pd.DataFrame(
            {
                "open_time": self.open_time,
                "open": self.open,
                "high": self.high,
                "low": self.low,
                "close": self.close,
                "volume": self.volume,
                "trade_count": self.trade_count,
            }
        )
        df["ts"] = pd.to_datetime(df["open_time"], unit="ms", utc=True)
        return df


class PositionState(Enum):
    """单个品种的持仓状态。"""

    FLAT = "flat"
    DIP_ENTRY = "dip"
    MEAN_REVERSION_ENTRY = "mean"


@dataclass(frozen=True)
class TradeSignal:
    """状态机输出的交易信号。"""
    side: str  # "buy" / "sell"
    entry: PositionState | None = None  # 仅 buy 携带入场类型

    @classmethod
    def buy(cls, entry: PositionState) -> "TradeSignal":
        if entry is PositionState.FLAT:
            raise ValueError("buy signal requires a non-flat entry kind")
        return cls(side="buy", entry=entry)

    @classmethod
    def sell(cls) -> "TradeSignal":
        return cls(side="sell")


@dataclass(frozen=True)
class SymbolPair:
    """交易对（base + quote），如 BNB/USDT -> "BNBUSDT"。"""
    base: str
    quote: str

    @property
    def symbol(self) -> str:
        return f"{self.base}{self.quote}"

    def __str__(self) -> str:
        return self.symbol


@dataclass
class Asset:
    """资产余额视图。"""
    name: str
    balance: float
