"""配置加载：YAML -> 环境变量展开 -> `MainConfig` 严格校验。

凭据不写进 YAML：用 `${BINANCE_API_KEY}` 之类的占位符引用环境变量，
配置目录（及其上一级）下的 .env / .env.local 会先被读入（不覆盖已有环境变量）。
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from shared.config.schema import MainConfig
from utils.logging import setup_logger

__all__ = ["MainConfig", "load_config", "load_env_files", "expand_env_placeholders"]

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_ENV_FILENAMES = (".env", ".env.local")
_LOGGER = setup_logger("config")


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """`KEY=value` -> (KEY, value)；空行、注释与不含 `=` 的行返回 None。"""
    text = line.strip()
    if not text or text.startswith("#") or "=" not in text:
        return None
    key, _, value = text.partition("=")
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(cfg_path: Path) -> list[str]:
    """读取配置目录与上级目录的 .env 文件，返回新写入的变量名。"""
    loaded: list[str] = []
    for folder in (cfg_path.parent, cfg_path.parent.parent):
        for name in _ENV_FILENAMES:
            env_path = folder / name
            if not env_path.is_file():
                continue
            for line in env_path.read_text(encoding="utf-8").splitlines():
                pair = _parse_env_line(line)
                if pair is None or pair[0] in os.environ:
                    continue
                os.environ[pair[0]] = pair[1]
                loaded.append(pair[0])
    if loaded:
        _LOGGER.debug("Loaded %d variables from .env files", len(loaded))
    return loaded


def _lookup(match: re.Match) -> str:
    name = match.group(1)
    value = os.environ.get(name)
    if value is None:
        raise ValueError(f"Missing environment variable: {name}")
    return value


def expand_env_placeholders(value: Any) -> Any:
    """递归展开字符串里的 `${VAR}`；变量未设置时抛 ValueError。"""
    if isinstance(value, str):
        return _PLACEHOLDER.sub(_lookup, value)
    if isinstance(value, dict):
        return {k: expand_env_placeholders(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_placeholders(v) for v in value]
    return value


def load_config(path: str | Path, load_env: bool = True, expand_env: bool = True) -> MainConfig:
    """读取 YAML 配置并校验。

    Parameters
    ----------
    path:
        配置文件路径。
    load_env:
        先读入 .env/.env.local。
    expand_env:
        展开 `${VAR}` 占位符（测试里可关闭）。

    Raises
    ------
    FileNotFoundError
        文件不存在。
    ValueError
        环境变量缺失、根节点不是映射，或字段校验失败（pydantic.ValidationError）。
    """
    cfg_path = Path(path)
    if not cfg_path.is_file():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    if load_env:
        load_env_files(cfg_path)

    raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping: {cfg_path}")

    if expand_env:
        raw = expand_env_placeholders(raw)
    return MainConfig.model_validate(raw)
