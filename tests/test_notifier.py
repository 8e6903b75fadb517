from __future__ import annotations

import requests

from shared.config.schema import NotifierConfig
from shared.notify.telegram import NullNotifier, TelegramNotifier, build_notifier


class _Resp:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text


class _Session:
    def __init__(self, outcome):
        self.outcome = outcome
        self.posts: list[dict] = []

    def post(self, url, json, timeout):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_send_posts_chat_message():
    session = _Session(_Resp(200))
    notifier = TelegramNotifier("TOKEN", "42", api_url="https://tg.example.invalid/", session=session)
    notifier.send("[2021-01-15 00:00:00] BNBUSDT Buy Signal")
    assert session.posts == [
        {
            "url": "https://tg.example.invalid/botTOKEN/sendMessage",
            "json": {"chat_id": "42", "text": "[2021-01-15 00:00:00] BNBUSDT Buy Signal"},
            "timeout": 10.0,
        }
    ]


def test_send_failures_are_logged_not_raised(caplog):
    notifier = TelegramNotifier("TOKEN", "42", session=_Session(requests.ConnectionError("down")))
    notifier.logger.addHandler(caplog.handler)
    try:
        notifier.send("hello")
        notifier.session = _Session(_Resp(400, "Bad Request: chat not found"))
        notifier.send("hello")
    finally:
        notifier.logger.removeHandler(caplog.handler)
    assert caplog.text.count("Telegram send failed") == 2
    assert "chat not found" in caplog.text


def test_build_notifier_respects_enabled_flag():
    assert isinstance(build_notifier(NotifierConfig()), NullNotifier)
    tg = build_notifier(NotifierConfig(enabled=True, bot_token="T", chat_id="1"))
    assert isinstance(tg, TelegramNotifier)
    assert tg.endpoint == "https://api.telegram.org/botT/sendMessage"
