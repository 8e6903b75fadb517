from __future__ import annotations

import hashlib
import hmac
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

from broker.binance_client import BinanceClient
from broker.errors import FatalExchangeError, RetryableExchangeError
from market_data.interval import Interval

NOW_MS = 1499827319559


class _Resp:
    def __init__(self, status_code: int, content: bytes):
        self.status_code = status_code
        self.content = content
        self.text = content.decode()


class _FakeSession:
    """按顺序回放预设响应；元素为异常时直接抛出。"""

    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, headers: dict, timeout: float):
        self.calls.append({"method": method, "url": url, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _client(responses: list[Any], **kwargs: Any) -> tuple[BinanceClient, _FakeSession, list[float]]:
    session = _FakeSession(responses)
    sleeps: list[float] = []
    params = dict(
        base_url="https://api.example.invalid",
        api_key="key",
        api_secret="secret",
        max_retries=2,
        session=session,
        sleep=sleeps.append,
        clock_ms=lambda: NOW_MS,
    )
    params.update(kwargs)
    return BinanceClient(**params), session, sleeps


def _query(url: str) -> list[tuple[str, str]]:
    return parse_qsl(urlsplit(url).query)


def test_signed_request_appends_timestamp_and_hmac_signature():
    client, session, _ = _client([_Resp(200, b"{}")], test_orders=True)
    client.market_buy("BNBUSDT", 12.345)

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["headers"] == {"X-MBX-APIKEY": "key"}
    split = urlsplit(call["url"])
    assert split.path == "/api/v3/order/test"

    raw_query = split.query
    unsigned, signature = raw_query.rsplit("&signature=", 1)
    assert unsigned == (
        f"symbol=BNBUSDT&side=BUY&type=MARKET&quoteOrderQty=12.34&timestamp={NOW_MS}"
    )
    expected = hmac.new(b"secret", unsigned.encode(), hashlib.sha256).hexdigest()
    assert signature == expected
    assert client.sign(unsigned) == expected


def test_market_sell_floors_quantity_and_uses_real_endpoint():
    client, session, _ = _client([_Resp(200, b"{}")])
    client.market_sell("BNBUSDT", 1.23456789, decimals=3)
    split = urlsplit(session.calls[0]["url"])
    assert split.path == "/api/v3/order"
    assert ("quantity", "1.234") in _query(session.calls[0]["url"])
    assert ("side", "SELL") in _query(session.calls[0]["url"])


def test_get_klines_is_unsigned_and_passes_window():
    client, session, _ = _client([_Resp(200, b"[]")])
    out = client.get_klines("BNBUSDT", Interval.parse("1h"), end_time=1000, limit=1)
    assert out == b"[]"
    call = session.calls[0]
    assert call["headers"] == {}
    assert _query(call["url"]) == [
        ("symbol", "BNBUSDT"),
        ("interval", "1h"),
        ("endTime", "1000"),
        ("limit", "1"),
    ]


def test_retryable_errors_back_off_then_raise():
    busy = _Resp(503, b'{"code":-1001,"msg":"Internal error; unable to process your request."}')
    client, session, sleeps = _client([busy, busy, busy])
    with pytest.raises(RetryableExchangeError) as exc:
        client.get_klines("BNBUSDT", "1h", limit=1)
    assert exc.value.code == -1001
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_backoff_is_capped():
    busy = _Resp(429, b'{"code":-1003,"msg":"Too many requests."}')
    client, _, sleeps = _client([busy] * 5, max_retries=4, backoff_max_secs=3.0)
    with pytest.raises(RetryableExchangeError):
        client.get_klines("BNBUSDT", "1h")
    assert sleeps == [1.0, 2.0, 3.0, 3.0]


def test_network_error_is_retried_for_reads():
    client, session, sleeps = _client([requests.ConnectionError("reset"), _Resp(200, b"[]")])
    assert client.get_klines("BNBUSDT", "1h") == b"[]"
    assert len(session.calls) == 2
    assert sleeps == [1.0]


def test_network_error_is_not_retried_for_orders():
    client, session, sleeps = _client([requests.Timeout("timed out"), _Resp(200, b"{}")])
    with pytest.raises(RetryableExchangeError):
        client.market_buy("BNBUSDT", 50.0)
    assert len(session.calls) == 1
    assert sleeps == []


def test_fatal_error_raises_immediately():
    client, session, sleeps = _client([_Resp(400, b'{"code":-1121,"msg":"Invalid symbol."}')])
    with pytest.raises(FatalExchangeError) as exc:
        client.get_klines("NOPE", "1h")
    assert exc.value.code == -1121
    assert exc.value.message == "Invalid symbol."
    assert len(session.calls) == 1
    assert sleeps == []


def test_non_json_error_body_falls_back_to_text():
    client, _, _ = _client([_Resp(403, b"<html>WAF</html>")])
    with pytest.raises(FatalExchangeError) as exc:
        client.get_klines("BNBUSDT", "1h")
    assert exc.value.code is None
    assert "WAF" in exc.value.message


def test_signed_request_without_secret_is_rejected():
    client, _, _ = _client([], api_secret=None)
    with pytest.raises(ValueError):
        client.get_balance("USDT")


def test_get_balance_reads_free_amount():
    account = (
        b'{"makerCommission":15,"balances":[{"asset":"BNB","free":"1.25000000","locked":"0.00000000"},'
        b'{"asset":"USDT","free":"99.50000000","locked":"0.00000000"}]}'
    )
    client, session, _ = _client([_Resp(200, account)])
    assert client.get_balance("USDT") == pytest.approx(99.5)
    assert urlsplit(session.calls[0]["url"]).path == "/api/v3/account"


def test_get_step_precision_reads_lot_size():
    info = (
        b'{"symbols":[{"symbol":"BNBUSDT","filters":['
        b'{"filterType":"PRICE_FILTER","tickSize":"0.01000000"},'
        b'{"filterType":"LOT_SIZE","minQty":"0.00100000","stepSize":"0.00100000"}]}]}'
    )
    client, session, _ = _client([_Resp(200, info)])
    assert client.get_step_precision("BNBUSDT") == 3
    assert ("symbol", "BNBUSDT") in _query(session.calls[0]["url"])
