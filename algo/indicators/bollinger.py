from __future__ import annotations

from typing import NamedTuple

from algo.indicators.base import check_period
from algo.indicators.moving_average import MovingAverage, StandardDeviation


class Bands(NamedTuple):
    basis: float
    upper: float
    lower: float


class BollingerBands:
    """布林带：basis = SMA(P)，上下轨 = basis ± m * σ（总体标准差）。"""

    def __init__(self, period: int = 20, multiplier: float = 2.0):
        self.period = check_period(period, "BollingerBands")
        if multiplier <= 0:
            raise ValueError("BollingerBands multiplier must be > 0")
        self.multiplier = float(multiplier)
        self._basis = MovingAverage(self.period)
        self._sd = StandardDeviation(self.period)

    def feed(self, close: float) -> None:
        self._basis.feed(close)
        self._sd.feed(close)

    def half_width(self) -> float | None:
        """m * σ，即 basis 到任一轨道的距离。"""
        sd = self._sd.value()
        return None if sd is None else self.multiplier * sd

    def value(self) -> Bands | None:
        basis, dev = self._basis.value(), self.half_width()
        if basis is None or dev is None:
            return None
        return Bands(basis=basis, upper=basis + dev, lower=basis - dev)

    def bandwidth(self) -> float | None:
        bands = self.value()
        if bands is None or bands.basis == 0.0:
            return None
        return (bands.upper - bands.lower) / bands.basis
