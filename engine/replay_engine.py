"""历史回放引擎（ReplayEngine）。

单线程、确定性：读取（或下载并缓存）[start - interval, end] 的 K 线，
逐根喂指标，`open_time >= start` 之后才评估信号，用模拟余额全仓买卖。
"""

from __future__ import annotations

from typing import Any

import pandas as pd

from algo.strategy.instrument import Instrument
from algo.strategy.registry import build_strategy
from broker.binance_client import BinanceClient
from database.kline_cache import KlineCache
from engine.base_engine import BaseEngine, EngineResult, fmt_ms, parse_date_ms
from shared.config.config_loader import load_config
from shared.config.schema import MainConfig
from shared.models.models import Asset, SymbolPair
from utils.logging import setup_logger

TRADE_COLUMNS = ["ts", "open_time", "side", "entry", "price", "base_balance", "quote_balance", "net_pct"]


class ReplayEngine(BaseEngine):
    def __init__(
        self,
        *,
        cfg_path: str = "config/config.yml",
        cfg_obj: MainConfig | None = None,
        client: Any = None,
        cache: KlineCache | None = None,
    ):
        self._cfg_path = cfg_path
        self._cfg_obj = cfg_obj
        self._client = client
        self._cache = cache
        self.logger = setup_logger("replay-engine")

    def run(self) -> EngineResult:
        cfg = self._cfg_obj or load_config(self._cfg_path)
        bt = cfg.backtest
        if bt is None:
            raise ValueError("Missing required config key: backtest")

        interval = cfg.interval_obj()
        start_ms = parse_date_ms(bt.start)
        end_ms = parse_date_ms(bt.end)
        if end_ms <= start_ms:
            raise ValueError(f"backtest.end must be after backtest.start: {bt.start} -> {bt.end}")

        pair = SymbolPair(base=bt.base, quote=bt.quote)
        cache = self._cache or KlineCache(bt.data_dir, self._client or BinanceClient.from_config(cfg.exchange))
        series = cache.load(pair.symbol, interval, start_ms, end_ms)

        inst = Instrument(pair, build_strategy(cfg.strategy))
        base = Asset(name=bt.base, balance=0.0)
        quote = Asset(name=bt.quote, balance=bt.initial_quote)
        self.logger.info(
            "Replay %s %s from %s to %s, %s balance %.2f",
            pair.symbol,
            interval,
            fmt_ms(start_ms),
            fmt_ms(end_ms),
            quote.name,
            quote.balance,
        )

        trades: list[dict[str, Any]] = []
        last_open_time: int | None = None
        fed = 0
        for candle in series.candles():
            if last_open_time is not None and candle.open_time <= last_open_time:
                self.logger.debug("Dropping non-increasing candle at %s", fmt_ms(candle.open_time))
                continue
            if candle.open_time > end_ms:
                break
            last_open_time = candle.open_time
            inst.update(candle)
            fed += 1
            if candle.open_time < start_ms:
                continue

            signal = inst.evaluate()
            if signal is None:
                continue
            if signal.side == "buy":
                base.balance = quote.balance / candle.close
                quote.balance = 0.0
                inst.apply(signal)
                net = None
                self.logger.info("BUY  %s: PRICE: %.4f", fmt_ms(candle.open_time), candle.close)
            else:
                net = inst.net_pct()
                entry = inst.position
                quote.balance = base.balance * candle.close
                base.balance = 0.0
                inst.apply(signal)
                self.logger.info(
                    "SELL %s: PRICE: %.4f NET: %.4f (%s)", fmt_ms(candle.open_time), candle.close, net, entry.value
                )
            trades.append(
                {
                    "ts": pd.Timestamp(candle.open_time, unit="ms", tz="UTC"),
                    "open_time": candle.open_time,
                    "side": signal.side,
                    "entry": signal.entry.value if signal.entry is not None else "",
                    "price": candle.close,
                    "base_balance": base.balance,
                    "quote_balance": quote.balance,
                    "net_pct": net,
                }
            )

        last_close = inst.candle.close if inst.candle is not None else 0.0
        final_value = quote.balance + base.balance * last_close
        roi_pct = (final_value / bt.initial_quote - 1.0) * 100.0
        self.logger.info("ROI: %.1f%%", roi_pct)

        summary = {
            "symbol": pair.symbol,
            "interval": str(interval),
            "start": bt.start,
            "end": bt.end,
            "candles": fed,
            "trades": len(trades),
            "roi_pct": roi_pct,
            "final_value": final_value,
            "position": inst.position.value,
            "base_balance": base.balance,
            "quote_balance": quote.balance,
        }
        return EngineResult(
            summary=summary,
            artifacts={"trades": pd.DataFrame(trades, columns=TRADE_COLUMNS), "candles": series.to_frame()},
        )
