from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from algo.indicators import (
    Atr,
    BollingerBands,
    Dema,
    Dmi,
    Ema,
    Macd,
    MovingAverage,
    RollingMax,
    RollingMin,
    Rsi,
    StandardDeviation,
    StochRsi,
    directional_movement,
    true_range,
)


def _feed_all(ind, samples):
    out = []
    for s in samples:
        ind.feed(s)
        out.append(ind.value())
    return out


def test_moving_average_basic_and_warmup():
    out = _feed_all(MovingAverage(3), [1, 2, 12])
    assert out[:2] == [None, None]
    assert out[2] == pytest.approx(5.0)


def test_moving_average_constant_input_is_constant():
    out = _feed_all(MovingAverage(4), [7.5] * 10)
    assert all(v == pytest.approx(7.5) for v in out[3:])


def test_moving_average_matches_pandas_rolling():
    rng = np.random.default_rng(7)
    prices = 100 + rng.normal(0, 1, 200).cumsum()
    out = _feed_all(MovingAverage(20), prices)
    ref = pd.Series(prices).rolling(20).mean()
    for got, want in zip(out[19:], ref.iloc[19:]):
        assert got == pytest.approx(want, rel=1e-9)


def test_standard_deviation_population():
    out = _feed_all(StandardDeviation(8), [2, 4, 4, 4, 5, 5, 7, 9])
    assert out[6] is None
    assert out[7] == pytest.approx(2.0)


def test_standard_deviation_matches_pandas_ddof0():
    rng = np.random.default_rng(11)
    prices = 50 + rng.normal(0, 2, 120).cumsum()
    out = _feed_all(StandardDeviation(10), prices)
    ref = pd.Series(prices).rolling(10).std(ddof=0)
    for got, want in zip(out[9:], ref.iloc[9:]):
        assert got == pytest.approx(want, rel=1e-7, abs=1e-9)


def test_period_must_be_positive():
    with pytest.raises(ValueError):
        MovingAverage(0)
    with pytest.raises(ValueError):
        Ema(-1)


def test_ema_seed_is_arithmetic_mean_then_matches_pandas_ewm():
    period = 5
    rng = np.random.default_rng(3)
    prices = list(100 + rng.normal(0, 1, 60).cumsum())
    out = _feed_all(Ema(period), prices)
    assert out[: period - 1] == [None] * (period - 1)
    assert out[period - 1] == pytest.approx(sum(prices[:period]) / period)

    # 种子之后等价于 adjust=False 的指数加权
    seeded = pd.Series([sum(prices[:period]) / period] + prices[period:])
    ref = seeded.ewm(span=period, adjust=False).mean()
    for got, want in zip(out[period - 1 :], ref):
        assert got == pytest.approx(want, rel=1e-9)


def test_wilder_ema_uses_one_over_period():
    ema = Ema.wilder(4)
    assert ema.alpha == pytest.approx(0.25)
    for s in [4, 4, 4, 4]:
        ema.feed(s)
    ema.feed(8)
    assert ema.value() == pytest.approx(5.0)


def test_dema_warmup_and_constant_input():
    dema = Dema(3)
    out = _feed_all(dema, [10.0] * 8)
    assert out[:4] == [None] * 4
    assert out[4] == pytest.approx(10.0)
    assert out[-1] == pytest.approx(10.0)


def test_dema_tracks_linear_trend_with_less_lag_than_ema():
    prices = [float(i) for i in range(1, 61)]
    dema_out = _feed_all(Dema(5), prices)
    ema_out = _feed_all(Ema(5), prices)
    assert abs(prices[-1] - dema_out[-1]) < abs(prices[-1] - ema_out[-1])


def test_true_range_uses_previous_close():
    assert true_range(11, 9, 10) == pytest.approx(2.0)
    assert true_range(11, 9, 5) == pytest.approx(6.0)
    assert true_range(11, 9, 15) == pytest.approx(6.0)


def test_atr_constant_range():
    atr = Atr(3)
    for _ in range(2):
        atr.feed(11, 9, 10)
    assert atr.value() is None
    for _ in range(5):
        atr.feed(11, 9, 10)
    assert atr.value() == pytest.approx(2.0)


def test_directional_movement_only_counts_dominant_side():
    assert directional_movement(12, 10, 11, 10) == (1, 0)
    assert directional_movement(11, 8, 11, 10) == (0, 2)
    # 上下移动相等时两者都为 0
    assert directional_movement(12, 8, 11, 9) == (0, 0)


def test_dmi_strict_uptrend():
    period = 5
    dmi = Dmi(period)
    readings = []
    for i in range(1, 30):
        # close=i, high=i+1, low=i-1；上一根：high=i, low=i-2, close=i-1
        dmi.feed(i + 1, i - 1, i, i - 2, i - 1)
        readings.append(dmi.reading())

    assert readings[period - 2] is None
    assert dmi.plus_di() == pytest.approx(50.0)
    assert dmi.minus_di() == pytest.approx(0.0)
    assert readings[2 * period - 3] is None
    assert readings[2 * period - 2] is not None
    assert dmi.adx() == pytest.approx(100.0)


def test_dmi_without_movement_never_produces_adx():
    dmi = Dmi(3)
    for _ in range(20):
        dmi.feed(10, 10, 10, 10, 10)
    assert dmi.plus_di() == 0.0
    assert dmi.minus_di() == 0.0
    assert dmi.adx() is None
    assert dmi.reading() is None


def test_rsi_extremes():
    rising = Rsi(3)
    for i in range(1, 10):
        rising.feed(i + 1, i)
    assert rising.value() == pytest.approx(100.0)

    flat = Rsi(3)
    for _ in range(10):
        flat.feed(5.0, 5.0)
    assert flat.value() == pytest.approx(50.0)

    falling = Rsi(3)
    for i in range(10, 1, -1):
        falling.feed(i - 1, i)
    assert falling.value() == pytest.approx(0.0)


def test_rsi_wilder_smoothing():
    rsi = Rsi(2)
    rsi.feed(11, 10)
    assert rsi.value() is None
    rsi.feed(10, 11)
    assert rsi.value() == pytest.approx(50.0)
    rsi.feed(11, 10)
    # up = 0.5 + 0.5*(1-0.5) = 0.75, down = 0.5 + 0.5*(0-0.5) = 0.25
    assert rsi.value() == pytest.approx(75.0)


def test_stoch_rsi_skips_flat_window_and_stays_in_range():
    flat = StochRsi(period=3, smoothing=2)
    for _ in range(20):
        flat.feed(5.0, 5.0)
    assert flat.rsi() == pytest.approx(50.0)
    assert flat.value() is None

    rng = np.random.default_rng(5)
    closes = list(100 + rng.normal(0, 1, 200).cumsum())
    sto = StochRsi(period=14, smoothing=3)
    values = []
    for prev, close in zip(closes, closes[1:]):
        sto.feed(close, prev)
        if sto.value() is not None:
            values.append(sto.value())
    assert values
    assert all(0.0 <= v <= 100.0 for v in values)


@pytest.mark.parametrize("cls, pick", [(RollingMax, max), (RollingMin, min)])
def test_rolling_extreme_matches_brute_force(cls, pick):
    rng = np.random.default_rng(42)
    samples = list(rng.integers(0, 20, 300).astype(float))
    period = 7
    ind = cls(period)
    assert ind.value() is None
    for i, s in enumerate(samples):
        ind.feed(s)
        window = samples[max(0, i - period + 1) : i + 1]
        assert ind.value() == pick(window)
    assert ind.count == len(samples)


def test_rolling_extreme_sentinels_are_not_reported():
    mx = RollingMax(5)
    mx.feed(-3.0)
    assert mx.value() == -3.0
    mn = RollingMin(5)
    mn.feed(1e9)
    assert mn.value() == 1e9
    assert not math.isinf(mn.value())


def test_bollinger_bands():
    bb = BollingerBands(8, 2.0)
    for s in [2, 4, 4, 4, 5, 5, 7]:
        bb.feed(s)
    assert bb.value() is None
    bb.feed(9)
    bands = bb.value()
    assert bands.basis == pytest.approx(5.0)
    assert bands.upper == pytest.approx(9.0)
    assert bands.lower == pytest.approx(1.0)
    assert bb.half_width() == pytest.approx(4.0)
    assert bb.bandwidth() == pytest.approx(8.0 / 5.0)


def test_bollinger_constant_input_collapses():
    bb = BollingerBands(5, 2.0)
    for _ in range(10):
        bb.feed(3.0)
    bands = bb.value()
    assert bands.upper == pytest.approx(3.0)
    assert bands.lower == pytest.approx(3.0)
    assert bb.bandwidth() == pytest.approx(0.0)


def test_macd_warmup_and_constant_input():
    macd = Macd(fast=3, slow=5, signal=2)
    for _ in range(4):
        macd.feed(10.0)
    assert macd.line() is None
    macd.feed(10.0)
    assert macd.line() == pytest.approx(0.0)
    assert macd.histogram() is None
    macd.feed(10.0)
    assert macd.histogram() == pytest.approx(0.0)
    assert macd.is_positive() is True

    with pytest.raises(ValueError):
        Macd(fast=5, slow=5)
