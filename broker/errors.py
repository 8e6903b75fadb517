"""交易所错误分类。

- 可重试：网络异常、HTTP 5xx、限频（429/418）以及交易所的临时性错误码；
- 致命：认证/签名、参数非法、订单被拒等，其余一律按致命处理。
"""

from __future__ import annotations

# -1000 UNKNOWN / -1001 DISCONNECTED / -1003 TOO_MANY_REQUESTS
# -1007 TIMEOUT / -1015 TOO_MANY_ORDERS
RETRYABLE_CODES = frozenset({-1000, -1001, -1003, -1007, -1015})
RETRYABLE_STATUSES = frozenset({418, 429})


class ExchangeError(Exception):
    """交易所返回的非成功响应（或请求未能送达）。"""

    retryable = False

    def __init__(self, code: int | None, message: str, status: int | None = None):
        self.code = code
        self.message = message
        self.status = status
        super().__init__(self.__str__())

    def __str__(self) -> str:
        parts = []
        if self.status is not None:
            parts.append(f"HTTP {self.status}")
        if self.code is not None:
            parts.append(f"code={self.code}")
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class RetryableExchangeError(ExchangeError):
    retryable = True


class FatalExchangeError(ExchangeError):
    retryable = False


def is_retryable(status: int | None, code: int | None) -> bool:
    if code is not None and code in RETRYABLE_CODES:
        return True
    if status is None:
        # 没有 HTTP 状态码说明请求没送达（连接失败/超时）
        return code is None
    return status >= 500 or status in RETRYABLE_STATUSES


def classify_error(status: int | None, code: int | None, message: str) -> ExchangeError:
    """按 HTTP 状态码与交易所错误码构造对应的异常实例（不抛出）。"""
    cls = RetryableExchangeError if is_retryable(status, code) else FatalExchangeError
    return cls(code, message, status)
