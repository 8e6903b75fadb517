"""Telegram 通知（fire-and-forget）。

发送失败只记 warning，不向调用方抛异常：通知丢失不应打断交易循环。
"""

from __future__ import annotations

from typing import Protocol

import requests

from shared.config.schema import NotifierConfig
from utils.logging import setup_logger


class Notifier(Protocol):
    def send(self, text: str) -> None:
        ...


class NullNotifier:
    """未启用通知时的占位实现。"""

    def send(self, text: str) -> None:
        return None


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
        timeout_secs: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = api_url.rstrip("/")
        self.timeout_secs = timeout_secs
        self.session = session or requests.Session()
        self.logger = setup_logger("telegram")

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/bot{self.bot_token}/sendMessage"

    def send(self, text: str) -> None:
        try:
            resp = self.session.post(
                self.endpoint,
                json={"chat_id": self.chat_id, "text": text},
                timeout=self.timeout_secs,
            )
        except requests.RequestException as exc:
            self.logger.warning("Telegram send failed: %s", exc)
            return
        if resp.status_code >= 400:
            self.logger.warning("Telegram send failed: HTTP %s %s", resp.status_code, resp.text[:200])


def build_notifier(cfg: NotifierConfig) -> Notifier:
    if not cfg.enabled:
        return NullNotifier()
    return TelegramNotifier(bot_token=cfg.bot_token or "", chat_id=cfg.chat_id or "", api_url=cfg.api_url)
