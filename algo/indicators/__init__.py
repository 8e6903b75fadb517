"""增量技术指标（indicators）。

每个指标每根收盘 K 线 `feed` 一次，`value()` 在预热期间返回 None。
"""

from algo.indicators.atr import Atr, true_range
from algo.indicators.bollinger import Bands, BollingerBands
from algo.indicators.dmi import Dmi, DmiReading, directional_movement
from algo.indicators.ema import Dema, Ema, Macd
from algo.indicators.extrema import RollingMax, RollingMin
from algo.indicators.moving_average import MovingAverage, StandardDeviation
from algo.indicators.rsi import Rsi, StochRsi
from algo.indicators.td_sequential import TdSequential

__all__ = [
    "Atr",
    "Bands",
    "BollingerBands",
    "Dema",
    "Dmi",
    "DmiReading",
    "Ema",
    "Macd",
    "MovingAverage",
    "RollingMax",
    "RollingMin",
    "Rsi",
    "StandardDeviation",
    "StochRsi",
    "TdSequential",
    "directional_movement",
    "true_range",
]
