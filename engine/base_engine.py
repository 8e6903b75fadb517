"""执行引擎基类。

实盘轮询（LiveEngine）与历史回放（ReplayEngine）共用同一个出口：
`run() -> EngineResult`，CLI 只依赖这一层。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class EngineResult:
    """引擎运行结果（统一出口）。"""

    summary: dict[str, Any]
    artifacts: dict[str, Any] | None = None


class BaseEngine(ABC):
    """引擎抽象基类。"""

    @abstractmethod
    def run(self) -> EngineResult:
        raise NotImplementedError


def fmt_ms(ms: int) -> str:
    """毫秒时间戳 -> UTC 可读时间。"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def parse_date_ms(text: str) -> int:
    """"2021-01-15" / ISO8601 -> UTC 毫秒时间戳（无时区按 UTC 处理）。"""
    dt = datetime.fromisoformat(str(text).strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
