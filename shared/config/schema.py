"""配置架构定义（Pydantic Schema）。

目标：
- 让配置成为“强类型 + 可演进”的边界协议；
- 启动阶段尽早失败，避免 typo/类型错误在实盘或长回放中“隐蔽爆炸”；
- 业务代码只读属性，不做 `cfg.get(...)` 与深层字典索引。
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from market_data.interval import Interval


class ExchangeConfig(BaseModel):
    """交易所（Binance REST）配置。"""
    base_url: str = "https://api.binance.com"
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    timeout_secs: float = Field(default=5.0, gt=0)

    # 可重试错误（网络/5xx/限频）的退避参数
    max_retries: int = Field(default=3, ge=0)
    backoff_initial_secs: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    backoff_max_secs: float = Field(default=30.0, ge=0)

    # 买单金额需严格大于该值（交易所 MIN_NOTIONAL 过滤器）
    min_notional: float = 10.0
    # True 时下单走 /api/v3/order/test（只校验不成交）
    test_orders: bool = False

    model_config = ConfigDict(extra="forbid")


class NotifierConfig(BaseModel):
    """Telegram 通知配置。"""
    enabled: bool = False
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_url: str = "https://api.telegram.org"
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _require_credentials(self) -> "NotifierConfig":
        if self.enabled and (not self.bot_token or not self.chat_id):
            raise ValueError("notifier.enabled requires bot_token and chat_id")
        return self


class StrategyConfig(BaseModel):
    """策略配置（type + params）。

    说明：
    - 策略参数不允许“散落在顶层”：必须进入 `params`；
    - `strategy:` 下的扁平字段会被自动挪到 `params`，
      用户写起来方便，schema 又能保持严格（forbid extra keys）。
    """
    type: str = "bollinger_dmi"
    params: Dict[str, Any] = Field(default_factory=dict)
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _pack_flat_params(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if set(data.keys()) <= {"type", "params"}:
            return data
        params = {k: v for k, v in data.items() if k not in {"type", "params"}}
        existing = data.get("params")
        if isinstance(existing, dict):
            params = {**params, **existing}
        return {"type": data.get("type", "bollinger_dmi"), "params": params}


class LiveConfig(BaseModel):
    """实盘轮询循环配置。"""
    # 监听线程逐字符读取，只能是单个字符
    quit_key: str = Field(default="q", min_length=1, max_length=1)
    watch_stdin: bool = True
    warmup_limit: int = Field(default=1000, gt=1, le=1000)
    max_ticks: Optional[int] = Field(default=None, gt=0)
    model_config = ConfigDict(extra="forbid")


class BacktestConfig(BaseModel):
    """历史回放配置（单品种）。"""
    base: str
    quote: str
    start: str
    end: str
    data_dir: str = "data"
    initial_quote: float = Field(default=100.0, gt=0)
    model_config = ConfigDict(extra="forbid")


class JournalConfig(BaseModel):
    """成交流水（CSV）配置。"""
    enabled: bool = True
    dir: str = "data/trades"
    model_config = ConfigDict(extra="forbid")


class MainConfig(BaseModel):
    """应用总配置。"""
    mode: Literal["live", "dry-run", "backtest"] = "dry-run"
    interval: str = "1h"
    cache_path: str = "config/cache.yml"

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    live: LiveConfig = Field(default_factory=LiveConfig)
    backtest: Optional[BacktestConfig] = None
    journal: JournalConfig = Field(default_factory=JournalConfig)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace("_", "-").lower()
        return value

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: str) -> str:
        Interval.parse(value)
        return value

    def interval_obj(self) -> Interval:
        return Interval.parse(self.interval)
