"""Binance REST 客户端（K 线 / 余额 / 交易规则 / 市价单）。

Notes
-----
- 所有接口返回原始响应字节，字段提取交给 `market_data.scanner` / `market_data.parser`；
- 签名对“最终发送的查询字符串”整体做 HMAC-SHA256，查询串手工拼接，不交给 requests 重新编码；
- 可重试错误按指数退避重试 `max_retries` 次，之后原样抛出；致命错误立即抛出。
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Any, Callable
from urllib.parse import urlencode

import requests

from broker.errors import ExchangeError, RetryableExchangeError, classify_error
from market_data.interval import Interval
from market_data.scanner import FieldScanner, GrammarError, parse_error_document
from shared.config.schema import ExchangeConfig
from shared.utils.precision import decimals_from_step, format_decimals
from utils.logging import setup_logger

KLINES_PATH = "/api/v3/klines"
ORDER_PATH = "/api/v3/order"
TEST_ORDER_PATH = "/api/v3/order/test"
ACCOUNT_PATH = "/api/v3/account"
EXCHANGE_INFO_PATH = "/api/v3/exchangeInfo"


class BinanceClient:
    """同步 Binance 现货 REST 客户端。

    Parameters
    ----------
    session:
        可注入的 `requests.Session`（测试里替换为假对象）。
    sleep / clock_ms:
        退避等待与毫秒时间戳来源，便于测试控制。
    """

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        api_key: str | None = None,
        api_secret: str | None = None,
        timeout_secs: float = 5.0,
        max_retries: int = 3,
        backoff_initial_secs: float = 1.0,
        backoff_factor: float = 2.0,
        backoff_max_secs: float = 30.0,
        test_orders: bool = False,
        quote_decimals: int = 2,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock_ms: Callable[[], int] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or ""
        self.api_secret = (api_secret or "").encode()
        self.timeout_secs = float(timeout_secs)
        self.max_retries = int(max_retries)
        self.backoff_initial_secs = float(backoff_initial_secs)
        self.backoff_factor = float(backoff_factor)
        self.backoff_max_secs = float(backoff_max_secs)
        self.test_orders = test_orders
        self.quote_decimals = int(quote_decimals)
        self.session = session or requests.Session()
        self._sleep = sleep
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self.logger = setup_logger("binance-client")

    @classmethod
    def from_config(cls, cfg: ExchangeConfig, **kwargs: Any) -> "BinanceClient":
        return cls(
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            api_secret=cfg.api_secret,
            timeout_secs=cfg.timeout_secs,
            max_retries=cfg.max_retries,
            backoff_initial_secs=cfg.backoff_initial_secs,
            backoff_factor=cfg.backoff_factor,
            backoff_max_secs=cfg.backoff_max_secs,
            test_orders=cfg.test_orders,
            **kwargs,
        )

    # ---- 底层请求 ----

    def sign(self, query: str) -> str:
        return hmac.new(self.api_secret, query.encode(), hashlib.sha256).hexdigest()

    def _build_query(self, params: list[tuple[str, Any]], signed: bool) -> str:
        query = urlencode(params)
        if not signed:
            return query
        if not self.api_secret:
            raise ValueError("api_secret is required for signed endpoints")
        stamp = f"timestamp={self._clock_ms()}"
        query = f"{query}&{stamp}" if query else stamp
        return f"{query}&signature={self.sign(query)}"

    def _send(self, method: str, path: str, query: str, signed: bool) -> bytes:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        headers = {"X-MBX-APIKEY": self.api_key} if signed else {}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout_secs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableExchangeError(None, f"network error: {exc}") from exc

        if resp.status_code >= 400:
            try:
                code, msg = parse_error_document(resp.content)
            except GrammarError:
                code, msg = None, resp.text[:200]
            raise classify_error(resp.status_code, code, msg)
        return resp.content

    def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, Any]] | None = None,
        signed: bool = False,
        idempotent: bool = True,
    ) -> bytes:
        backoff = self.backoff_initial_secs
        attempt = 0
        while True:
            # 每次重试都重新签名（时间戳会变）
            query = self._build_query(list(params or []), signed)
            try:
                return self._send(method, path, query, signed)
            except RetryableExchangeError as exc:
                # 非幂等请求（下单）在未收到响应时不重试，避免重复成交
                if attempt >= self.max_retries or (not idempotent and exc.status is None):
                    self.logger.error("%s %s failed after %d retries: %s", method, path, attempt, exc)
                    raise
                sleep_for = min(self.backoff_max_secs, max(0.0, backoff))
                self.logger.warning("%s %s error: %s (retry in %.1fs)", method, path, exc, sleep_for)
                self._sleep(sleep_for)
                backoff = min(
                    self.backoff_max_secs,
                    max(self.backoff_initial_secs, backoff * self.backoff_factor),
                )
                attempt += 1

    # ---- 行情 ----

    def get_klines(
        self,
        symbol: str,
        interval: Interval | str,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> bytes:
        params: list[tuple[str, Any]] = [("symbol", symbol), ("interval", str(interval))]
        if start_time is not None:
            params.append(("startTime", int(start_time)))
        if end_time is not None:
            params.append(("endTime", int(end_time)))
        if limit is not None:
            params.append(("limit", int(limit)))
        return self._request("GET", KLINES_PATH, params)

    # ---- 账户 / 交易规则 ----

    def get_balance(self, asset: str) -> float:
        """账户中某资产的可用余额（`free`）。"""
        payload = self._request("GET", ACCOUNT_PATH, signed=True)
        scanner = FieldScanner(payload)
        scanner.find_key("balances")
        scanner.enter_value()
        scanner.find_pair("asset", asset)
        scanner.find_key("free")
        raw = scanner.read_value()
        try:
            return float(raw)
        except ValueError as exc:
            raise GrammarError(f"non-numeric balance {raw!r} for {asset}") from exc

    def get_step_precision(self, symbol: str) -> int:
        """LOT_SIZE 过滤器的 stepSize 对应的小数位数。"""
        payload = self._request("GET", EXCHANGE_INFO_PATH, [("symbol", symbol)])
        scanner = FieldScanner(payload)
        scanner.find_key("symbols")
        scanner.enter_value()
        scanner.find_key("filters")
        scanner.enter_value()
        scanner.find_pair("filterType", "LOT_SIZE")
        scanner.find_key("stepSize")
        raw = scanner.read_value().decode()
        try:
            return decimals_from_step(raw)
        except ValueError as exc:
            raise GrammarError(f"invalid stepSize {raw!r} for {symbol}") from exc

    # ---- 下单 ----

    def _order_path(self) -> str:
        return TEST_ORDER_PATH if self.test_orders else ORDER_PATH

    def market_buy(self, symbol: str, quote_qty: float) -> bytes:
        """按计价资产金额（quoteOrderQty）市价买入。"""
        params = [
            ("symbol", symbol),
            ("side", "BUY"),
            ("type", "MARKET"),
            ("quoteOrderQty", format_decimals(quote_qty, self.quote_decimals)),
        ]
        return self._request("POST", self._order_path(), params, signed=True, idempotent=False)

    def market_sell(self, symbol: str, quantity: float, decimals: int = 8) -> bytes:
        """按基础资产数量（quantity，向下取整到 decimals 位）市价卖出。"""
        params = [
            ("symbol", symbol),
            ("side", "SELL"),
            ("type", "MARKET"),
            ("quantity", format_decimals(quantity, decimals)),
        ]
        return self._request("POST", self._order_path(), params, signed=True, idempotent=False)


__all__ = ["BinanceClient", "ExchangeError"]
