"""启动缓存（cache.yml）：资产余额与交易品种清单。

格式::

    assets:
      - name: USDT
        balance: 250.0
      - name: BNB          # balance 缺省时启动阶段从账户接口读取
    symbols:
      - base: BNB
        quote: USDT
        step_size: 3       # 数量小数位；缺省时从 exchangeInfo 的 LOT_SIZE 读取
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.models import SymbolPair


class AssetEntry(BaseModel):
    name: str
    balance: Optional[float] = Field(default=None, ge=0)
    model_config = ConfigDict(extra="forbid")


class SymbolEntry(BaseModel):
    base: str
    quote: str
    step_size: Optional[int] = Field(default=None, ge=0)
    model_config = ConfigDict(extra="forbid")

    def pair(self) -> SymbolPair:
        return SymbolPair(base=self.base, quote=self.quote)


class CacheFile(BaseModel):
    assets: List[AssetEntry] = Field(default_factory=list)
    symbols: List[SymbolEntry] = Field(default_factory=list)
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_consistency(self) -> "CacheFile":
        names = [a.name for a in self.assets]
        if len(set(names)) != len(names):
            raise ValueError("cache assets contain duplicate names")
        if not self.symbols:
            raise ValueError("cache must list at least one symbol")
        # 所有品种必须共用同一个计价资产，买单按它的余额平均分配
        quotes = {s.quote for s in self.symbols}
        if len(quotes) != 1:
            raise ValueError(f"all symbols must share one quote asset, found {sorted(quotes)}")
        known = set(names)
        for s in self.symbols:
            for asset in (s.base, s.quote):
                if asset not in known:
                    raise ValueError(f"symbol {s.base}{s.quote} references unknown asset {asset}")
        return self

    @property
    def quote_asset(self) -> str:
        return self.symbols[0].quote


def load_cache(path: str | Path) -> CacheFile:
    """读取并校验 cache.yml。"""
    cache_path = Path(path)
    if not cache_path.exists():
        raise FileNotFoundError(f"Cache file not found: {cache_path}")
    with cache_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return CacheFile.model_validate(raw)
