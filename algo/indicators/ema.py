"""指数移动平均家族：EMA / Wilder 平滑 / DEMA / MACD。"""

from __future__ import annotations

from algo.indicators.base import check_period


class Ema:
    """指数移动平均（EMA）。

    前 `period` 个样本先累加，第 `period` 个样本时用算术平均作为种子；
    之后按 `value += alpha * (sample - value)` 递推。

    Parameters
    ----------
    period:
        周期 P。
    alpha:
        平滑系数；默认 2/(P+1)。Wilder 平滑使用 1/P（见 `Ema.wilder`）。
    """

    def __init__(self, period: int, alpha: float | None = None):
        self.period = check_period(period, "Ema")
        self.alpha = float(alpha) if alpha is not None else 2.0 / (self.period + 1)
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError("Ema alpha must be in (0, 1]")
        self._count = 0
        self._current = 0.0
        self._value: float | None = None

    @classmethod
    def wilder(cls, period: int) -> "Ema":
        """Wilder 平滑（alpha = 1/P），供 DMI/RSI 复用。"""
        p = check_period(period, "Ema")
        return cls(p, alpha=1.0 / p)

    def feed(self, sample: float) -> None:
        if self._count < self.period:
            self._current += float(sample)
            self._count += 1
            if self._count == self.period:
                self._current /= self.period
                self._value = self._current
            return
        self._current += self.alpha * (float(sample) - self._current)
        self._value = self._current

    def value(self) -> float | None:
        return self._value


class Dema:
    """双重指数移动平均：2 * EMA(x) - EMA(EMA(x))。

    外层 EMA 只在内层 EMA 可用之后才开始喂数据，因此预热期约为 2P-1。
    """

    def __init__(self, period: int):
        self.period = check_period(period, "Dema")
        self._inner = Ema(self.period)
        self._outer = Ema(self.period)

    def feed(self, sample: float) -> None:
        self._inner.feed(sample)
        inner = self._inner.value()
        if inner is not None:
            self._outer.feed(inner)

    def value(self) -> float | None:
        inner = self._inner.value()
        outer = self._outer.value()
        if inner is None or outer is None:
            return None
        return 2.0 * inner - outer


class Macd:
    """MACD：快慢 EMA 差值 + 信号线 + 柱状图。"""

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        if fast >= slow:
            raise ValueError("Macd fast period must be < slow period")
        self._fast = Ema(fast)
        self._slow = Ema(slow)
        self._signal = Ema(signal)

    def feed(self, price: float) -> None:
        self._fast.feed(price)
        self._slow.feed(price)
        line = self.line()
        if line is not None:
            self._signal.feed(line)

    def line(self) -> float | None:
        fast, slow = self._fast.value(), self._slow.value()
        if fast is None or slow is None:
            return None
        return fast - slow

    def signal_line(self) -> float | None:
        return self._signal.value()

    def histogram(self) -> float | None:
        line, signal = self.line(), self._signal.value()
        if line is None or signal is None:
            return None
        return line - signal

    def value(self) -> float | None:
        return self.line()

    def is_positive(self) -> bool | None:
        hist = self.histogram()
        return None if hist is None else hist >= 0.0
