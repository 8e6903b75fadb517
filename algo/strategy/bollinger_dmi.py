"""布林带 + DMI 状态机策略。

状态：FLAT / DIP_ENTRY（跌破下轨抄底）/ MEAN_REVERSION_ENTRY（趋势内回踩中轨）。

- FLAT -> DIP_ENTRY：close < lower（ADX > tighten_adx 时下轨再下移半个 m·σ）；
- FLAT -> MEAN_REVERSION_ENTRY：+DI > -DI，adx_low < ADX < adx_high，ADX > DEMA(ADX)，
  且 basis < low < basis + m·σ/2；两者同时满足时 DIP 优先；
- DIP_ENTRY -> FLAT：(close >= 入场价 且 close > basis) 或 close > upper；
- MEAN_REVERSION_ENTRY -> FLAT：+DI > -DI，ADX > adx_low，ADX > DEMA（`exit_on_trend_fade`
  为 True 时改为 DEMA > ADX），且最近出现过 perfect 上涨 setup。
"""

from __future__ import annotations

from dataclasses import dataclass

from algo.indicators import Bands, BollingerBands, Dema, Dmi, DmiReading, TdSequential
from algo.strategy.base import Strategy
from shared.models.models import Candle, PositionState, TradeSignal


@dataclass(frozen=True)
class IndicatorSnapshot:
    """单根 K 线收盘后的指标读数（全部就绪时才存在）。"""
    bands: Bands
    half_width: float
    dmi: DmiReading
    dema: float
    recent_perfect: bool


class IndicatorSet:
    """单个品种的指标组合：DMI、布林带、ADX 的 DEMA、TD Sequential，
    以及 “recent perfect” 锁存标志。"""

    def __init__(
        self,
        dmi_period: int = 14,
        bb_period: int = 20,
        bb_multiplier: float = 2.0,
        dema_period: int = 9,
        adx_low: float = 25.0,
    ):
        self.dmi = Dmi(dmi_period)
        self.bb = BollingerBands(bb_period, bb_multiplier)
        self.dema = Dema(dema_period)
        self.td = TdSequential()
        self.adx_low = adx_low
        self.recent_perfect = False

    def update(self, candle: Candle, prev: Candle) -> None:
        self.dmi.feed(candle.high, candle.low, prev.high, prev.low, prev.close)
        self.bb.feed(candle.close)
        adx = self.dmi.adx()
        if adx is not None:
            self.dema.feed(adx)
        self.td.feed(candle.high, candle.low, candle.close)

        reading = self.dmi.reading()
        dema = self.dema.value()
        if reading is None or dema is None:
            return
        if (
            self.td.sell_perfect()
            and reading.adx > dema
            and reading.plus_di > reading.minus_di
            and reading.adx > self.adx_low
        ):
            self.recent_perfect = True
        if self.recent_perfect and reading.adx < self.adx_low:
            self.recent_perfect = False

    def snapshot(self) -> IndicatorSnapshot | None:
        bands = self.bb.value()
        half_width = self.bb.half_width()
        reading = self.dmi.reading()
        dema = self.dema.value()
        if bands is None or half_width is None or reading is None or dema is None:
            return None
        return IndicatorSnapshot(
            bands=bands,
            half_width=half_width,
            dmi=reading,
            dema=dema,
            recent_perfect=self.recent_perfect,
        )


class BollingerDmiStrategy(Strategy):
    """Parameters
    ----------
    dmi_period / bb_period / bb_multiplier / dema_period:
        指标周期。
    tighten_adx:
        ADX 超过该值时，DIP 入场的下轨额外下移 m·σ/2。
    adx_low / adx_high:
        均值回归入场要求 adx_low < ADX < adx_high；出场与 perfect 锁存使用 adx_low。
    exit_on_trend_fade:
        均值回归出场条件改为 DEMA > ADX（趋势减弱时离场）。
    """

    def __init__(
        self,
        dmi_period: int = 14,
        bb_period: int = 20,
        bb_multiplier: float = 2.0,
        dema_period: int = 9,
        tighten_adx: float = 15.0,
        adx_low: float = 25.0,
        adx_high: float = 40.0,
        exit_on_trend_fade: bool = False,
    ):
        if adx_low >= adx_high:
            raise ValueError("adx_low must be < adx_high")
        self.dmi_period = dmi_period
        self.bb_period = bb_period
        self.bb_multiplier = bb_multiplier
        self.dema_period = dema_period
        self.tighten_adx = float(tighten_adx)
        self.adx_low = float(adx_low)
        self.adx_high = float(adx_high)
        self.exit_on_trend_fade = exit_on_trend_fade

    def build_indicators(self) -> IndicatorSet:
        return IndicatorSet(
            dmi_period=self.dmi_period,
            bb_period=self.bb_period,
            bb_multiplier=self.bb_multiplier,
            dema_period=self.dema_period,
            adx_low=self.adx_low,
        )

    def evaluate(
        self,
        position: PositionState,
        candle: Candle,
        indicators: IndicatorSet,
        entry_price: float | None,
    ) -> TradeSignal | None:
        snap = indicators.snapshot()
        if snap is None:
            return None
        if position is PositionState.FLAT:
            return self._entry(candle, snap)
        if position is PositionState.DIP_ENTRY:
            return TradeSignal.sell() if self._dip_exit(candle, snap, entry_price) else None
        return TradeSignal.sell() if self._mean_exit(snap) else None

    def _entry(self, candle: Candle, snap: IndicatorSnapshot) -> TradeSignal | None:
        bands, dmi = snap.bands, snap.dmi
        bound = bands.lower - snap.half_width / 2 if dmi.adx > self.tighten_adx else bands.lower
        if candle.close < bound:
            return TradeSignal.buy(PositionState.DIP_ENTRY)
        if (
            dmi.plus_di > dmi.minus_di
            and self.adx_low < dmi.adx < self.adx_high
            and dmi.adx > snap.dema
            and bands.basis < candle.low < bands.basis + snap.half_width / 2
        ):
            return TradeSignal.buy(PositionState.MEAN_REVERSION_ENTRY)
        return None

    def _dip_exit(self, candle: Candle, snap: IndicatorSnapshot, entry_price: float | None) -> bool:
        if candle.close > snap.bands.upper:
            return True
        if not entry_price:
            return False
        return candle.close / entry_price - 1 >= 0 and candle.close > snap.bands.basis

    def _mean_exit(self, snap: IndicatorSnapshot) -> bool:
        dmi = snap.dmi
        trend = snap.dema > dmi.adx if self.exit_on_trend_fade else dmi.adx > snap.dema
        return dmi.plus_di > dmi.minus_di and dmi.adx > self.adx_low and trend and snap.recent_perfect
