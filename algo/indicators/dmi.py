"""方向运动指标（DMI：+DI / -DI / ADX）。"""

from __future__ import annotations

from typing import NamedTuple

from algo.indicators.atr import Atr
from algo.indicators.base import check_period
from algo.indicators.ema import Ema


class DmiReading(NamedTuple):
    adx: float
    plus_di: float
    minus_di: float


def directional_movement(
    high: float, low: float, prev_high: float, prev_low: float
) -> tuple[float, float]:
    """返回 (+DM, -DM)。

    只有“为正且严格大于另一方向”的移动才计入，否则为 0。
    """
    up_move = high - prev_high
    down_move = prev_low - low
    plus_dm = up_move if up_move > down_move and up_move > 0.0 else 0.0
    minus_dm = down_move if down_move > up_move and down_move > 0.0 else 0.0
    return plus_dm, minus_dm


class Dmi:
    """DMI 组合指标。

    +DM/-DM 与 ATR 均用 Wilder 平滑；DX = |+DI - -DI| / (+DI + -DI) * 100，
    再经 Wilder 平滑得到 ADX（趋势强度）。

    Notes
    -----
    - +DI + -DI == 0（无方向移动）时跳过该样本，DX 平均不更新，避免 NaN 污染；
    - ATR == 0（价格完全不动）时 +DI/-DI 视为 0。
    """

    def __init__(self, period: int = 14):
        self.period = check_period(period, "Dmi")
        self._plus_dm = Ema.wilder(self.period)
        self._minus_dm = Ema.wilder(self.period)
        self._dx = Ema.wilder(self.period)
        self._atr = Atr(self.period)

    def feed(
        self,
        high: float,
        low: float,
        prev_high: float,
        prev_low: float,
        prev_close: float,
    ) -> None:
        plus_dm, minus_dm = directional_movement(high, low, prev_high, prev_low)
        self._plus_dm.feed(plus_dm)
        self._minus_dm.feed(minus_dm)
        self._atr.feed(high, low, prev_close)

        plus_di, minus_di = self.plus_di(), self.minus_di()
        if plus_di is None or minus_di is None:
            return
        total = plus_di + minus_di
        if total == 0.0:
            return
        self._dx.feed(abs(plus_di - minus_di) / total * 100.0)

    def _di(self, smoothed: Ema) -> float | None:
        dm, atr = smoothed.value(), self._atr.value()
        if dm is None or atr is None:
            return None
        if atr == 0.0:
            return 0.0
        return dm / atr * 100.0

    def plus_di(self) -> float | None:
        return self._di(self._plus_dm)

    def minus_di(self) -> float | None:
        return self._di(self._minus_dm)

    def adx(self) -> float | None:
        return self._dx.value()

    def value(self) -> float | None:
        return self.adx()

    def reading(self) -> DmiReading | None:
        adx, plus_di, minus_di = self.adx(), self.plus_di(), self.minus_di()
        if adx is None or plus_di is None or minus_di is None:
            return None
        return DmiReading(adx=adx, plus_di=plus_di, minus_di=minus_di)
