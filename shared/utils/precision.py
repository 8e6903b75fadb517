"""精度与步进工具（lot size 裁剪）。

交易所用 stepSize（如 "0.00100000"）描述数量步进；本地统一保存为“小数位数”。
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation


def decimals_from_step(step: str | float) -> int:
    """根据 step（10 的负次幂）推导小数位数。

    >>> decimals_from_step("0.00100000")
    3
    >>> decimals_from_step("1.00000000")
    0
    """
    try:
        d = Decimal(str(step))
    except InvalidOperation as exc:
        raise ValueError(f"invalid step size: {step!r}") from exc
    if d <= 0:
        raise ValueError(f"step size must be > 0: {step!r}")
    d = d.normalize()
    exp = d.as_tuple().exponent
    return max(0, -int(exp))


def floor_to_decimals(value: float, decimals: int) -> float:
    """把 value 向下裁剪到指定小数位（避免 float 噪声导致超额下单）。"""
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    quantum = Decimal(1).scaleb(-int(decimals))
    out = Decimal(str(value)).quantize(quantum, rounding=ROUND_FLOOR)
    return float(out)


def format_decimals(value: float, decimals: int) -> str:
    """按小数位格式化为交易所可接受的字符串（不带科学计数法）。"""
    return f"{floor_to_decimals(value, decimals):.{int(decimals)}f}"
