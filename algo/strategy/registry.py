"""策略注册表：配置里的 `strategy.type` -> Strategy 实现。"""

from __future__ import annotations

import inspect
from typing import Any, Mapping

from algo.strategy.base import Strategy
from algo.strategy.bollinger_dmi import BollingerDmiStrategy
from shared.config.schema import StrategyConfig
from utils.logging import setup_logger

DEFAULT_STRATEGY = "bollinger_dmi"

_STRATEGIES: dict[str, type[Strategy]] = {}
_LOGGER = setup_logger("strategy-registry")


def register_strategy(name: str, cls: type[Strategy]) -> None:
    _STRATEGIES[name] = cls


def get_strategy_cls(name: str) -> type[Strategy]:
    cls = _STRATEGIES.get(name)
    if cls is None:
        known = ", ".join(sorted(_STRATEGIES))
        raise ValueError(f"Unknown strategy: {name} (known: {known})")
    return cls


def _init_params(cls: type, params: Mapping[str, Any]) -> dict[str, Any]:
    """只保留构造函数认识的参数；其余记 warning 后丢弃（拼写错误不会静默生效）。"""
    accepted = inspect.signature(cls.__init__).parameters
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in accepted.values()):
        return dict(params)
    unknown = sorted(k for k in params if k not in accepted or k == "self")
    if unknown:
        _LOGGER.warning("Ignoring unknown params for %s: %s", cls.__name__, ", ".join(unknown))
    return {k: v for k, v in params.items() if k not in unknown}


def _split(cfg: StrategyConfig | Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    if isinstance(cfg, StrategyConfig):
        return cfg.type, dict(cfg.params)
    if isinstance(cfg, Mapping):
        params = {k: v for k, v in cfg.items() if k != "type"}
        return str(cfg.get("type", DEFAULT_STRATEGY)), params
    raise ValueError("strategy cfg must be StrategyConfig or dict")


def build_strategy(cfg: StrategyConfig | Mapping[str, Any] | None) -> Strategy:
    """按配置构建策略；cfg 为 None 时使用默认参数的 bollinger_dmi。"""
    if cfg is None:
        return _STRATEGIES[DEFAULT_STRATEGY]()
    name, params = _split(cfg)
    cls = get_strategy_cls(name)
    return cls(**_init_params(cls, params))


register_strategy(DEFAULT_STRATEGY, BollingerDmiStrategy)
