"""实盘轮询引擎（LiveEngine）。

流程：配置 → 资产/品种缓存 → 历史预热 → 按 K 线收盘时刻轮询 → 信号 → 通知 → 下单 → 总结。

Notes
-----
- 主线程独占全部指标与持仓状态；按键监听线程只负责 set 一次停止事件；
- 取消只在两个 tick 之间检查，不会打断进行中的网络请求；
- 可重试错误在客户端内部退避重试，仍失败则该品种跳过本 tick；
  下单失败只影响该品种，成交后余额回读失败则沿用缓存余额；
  致命错误（认证/签名/参数）终止循环并向上抛出。
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable, TextIO

from algo.strategy.instrument import Instrument
from algo.strategy.registry import build_strategy
from broker.binance_client import BinanceClient
from broker.errors import FatalExchangeError, RetryableExchangeError
from engine.base_engine import BaseEngine, EngineResult, fmt_ms
from market_data.interval import Interval
from market_data.parser import parse_candle, parse_candles
from market_data.scanner import GrammarError
from shared.config.cache_loader import CacheFile, load_cache
from shared.config.config_loader import load_config
from shared.config.schema import MainConfig
from shared.models.models import Asset, TradeSignal
from shared.notify.telegram import Notifier, build_notifier
from utils.logging import setup_logger
from shared.utils.precision import floor_to_decimals
from utils.trade_logger import TradeLogger, TradeRecord

# 没有 LOT_SIZE 信息时卖单数量保留的小数位
_DEFAULT_STEP_DECIMALS = 8


def watch_stdin(stream: TextIO, quit_key: str, stop_event: threading.Event) -> None:
    """逐字符读取输入流，读到 quit_key 时 set 停止事件；输入结束则直接返回。"""
    while True:
        ch = stream.read(1)
        if not ch:
            return
        if ch == quit_key:
            stop_event.set()
            return


class LiveEngine(BaseEngine):
    def __init__(
        self,
        *,
        cfg_path: str = "config/config.yml",
        cfg_obj: MainConfig | None = None,
        max_ticks: int | None = None,
        client: Any = None,
        notifier: Notifier | None = None,
        cache: CacheFile | None = None,
        trade_logger: TradeLogger | None = None,
        stop_event: Any = None,
        clock_ms: Callable[[], int] | None = None,
        stdin: TextIO | None = None,
    ):
        self._cfg_path = cfg_path
        self._cfg_obj = cfg_obj
        self._max_ticks = max_ticks
        self._client = client
        self._notifier = notifier
        self._cache = cache
        self._trade_logger = trade_logger
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self._stdin = stdin

        self.cfg: MainConfig | None = None
        self.assets: dict[str, Asset] = {}
        self.instruments: list[Instrument] = []
        self.orders = 0
        self.logger = setup_logger("live-engine")

    def run(self) -> EngineResult:
        cfg = self._load_cfg()
        self.cfg = cfg
        if cfg.mode == "backtest":
            raise ValueError("LiveEngine cannot run with mode=backtest; use the backtest command")

        interval = cfg.interval_obj()
        client = self._client or self._build_client(cfg)
        notifier = self._notifier or build_notifier(cfg.notifier)
        trade_logger = self._trade_logger
        if trade_logger is None and cfg.journal.enabled:
            trade_logger = TradeLogger(cfg.journal.dir)
        cache = self._cache or load_cache(cfg.cache_path)

        self.assets = self._resolve_assets(cache, client)
        self.instruments = self._build_instruments(cfg, cache, client)

        step = interval.to_millis()
        now = self._clock_ms()
        start = now + step - now % step
        self.logger.info(
            "Live loop starting: mode=%s interval=%s symbols=%s first close=%s",
            cfg.mode,
            interval,
            ",".join(i.symbol for i in self.instruments),
            fmt_ms(start),
        )
        self._warm_up(client, interval, start, cfg.live.warmup_limit)

        watcher = self._start_watcher(cfg)
        max_ticks = self._max_ticks or cfg.live.max_ticks
        close_time = start - 1
        ticks = 0
        try:
            while True:
                timeout = max(0, close_time - self._clock_ms()) / 1000
                if self._stop_event.wait(timeout):
                    self.logger.info("Quit key received, exiting")
                    break
                self._tick(client, notifier, trade_logger, interval, close_time)
                close_time += step
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    self.logger.info("Reached max_ticks=%d, exiting", max_ticks)
                    break
        except FatalExchangeError as exc:
            self.logger.error("Fatal exchange error, stopping live loop: %s", exc)
            raise
        finally:
            if watcher is not None and self._stop_event.is_set():
                watcher.join()
            if trade_logger is not None:
                trade_logger.close()

        return EngineResult(summary=self._build_summary(ticks))

    def _load_cfg(self) -> MainConfig:
        return self._cfg_obj or load_config(self._cfg_path)

    @staticmethod
    def _build_client(cfg: MainConfig) -> BinanceClient:
        client = BinanceClient.from_config(cfg.exchange)
        # dry-run 下单一律走 /api/v3/order/test
        client.test_orders = client.test_orders or cfg.mode == "dry-run"
        return client

    def _resolve_assets(self, cache: CacheFile, client: Any) -> dict[str, Asset]:
        assets: dict[str, Asset] = {}
        for entry in cache.assets:
            balance = entry.balance
            if balance is None:
                balance = client.get_balance(entry.name)
                self.logger.info("Balance from account: %s %s", entry.name, balance)
            assets[entry.name] = Asset(name=entry.name, balance=float(balance))
        return assets

    def _build_instruments(self, cfg: MainConfig, cache: CacheFile, client: Any) -> list[Instrument]:
        strategy = build_strategy(cfg.strategy)
        instruments = []
        for entry in cache.symbols:
            pair = entry.pair()
            step_size = entry.step_size
            if step_size is None:
                step_size = client.get_step_precision(pair.symbol)
                self.logger.info("Step precision from exchangeInfo: %s %d", pair.symbol, step_size)
            instruments.append(Instrument(pair, strategy, step_size=step_size))
        return instruments

    def _warm_up(self, client: Any, interval: Interval, start: int, limit: int) -> None:
        end = start - 2 * interval.to_millis()
        for inst in self.instruments:
            series = parse_candles(client.get_klines(inst.symbol, interval, end_time=end, limit=limit))
            for candle in series.candles():
                inst.update(candle)
            self.logger.info("Warm-up %s: %d candles", inst.symbol, len(series))

    def _start_watcher(self, cfg: MainConfig) -> threading.Thread | None:
        if not cfg.live.watch_stdin:
            return None
        stream = self._stdin or sys.stdin
        watcher = threading.Thread(
            target=watch_stdin,
            args=(stream, cfg.live.quit_key, self._stop_event),
            name="quit-key-watcher",
            daemon=True,
        )
        watcher.start()
        self.logger.info("Press '%s' + Enter to stop", cfg.live.quit_key)
        return watcher

    # ---- 单个 tick ----

    def _tick(
        self,
        client: Any,
        notifier: Notifier,
        trade_logger: TradeLogger | None,
        interval: Interval,
        close_time: int,
    ) -> None:
        updated: list[Instrument] = []
        for inst in self.instruments:
            try:
                candle = parse_candle(client.get_klines(inst.symbol, interval, end_time=close_time, limit=1))
            except GrammarError as exc:
                self.logger.warning("Malformed kline payload for %s, skipping tick: %s", inst.symbol, exc)
                continue
            except RetryableExchangeError as exc:
                self.logger.warning("Kline poll failed for %s, skipping tick: %s", inst.symbol, exc)
                continue
            inst.update(candle)
            updated.append(inst)

        signals: list[tuple[Instrument, TradeSignal]] = []
        for inst in updated:
            signal = inst.evaluate()
            if signal is None:
                continue
            assert inst.candle is not None
            label = "Buy" if signal.side == "buy" else "Sell"
            notifier.send(f"[{fmt_ms(inst.candle.open_time)}] {inst.symbol} {label} Signal")
            signals.append((inst, signal))

        for inst, signal in signals:
            try:
                if signal.side == "buy":
                    self._buy(client, trade_logger, inst, signal)
                else:
                    self._sell(client, trade_logger, inst, signal)
            except (RetryableExchangeError, GrammarError) as exc:
                # 订单未确认：持仓不变，下一个品种照常处理
                self.logger.error("%s order failed, position unchanged: %s", inst.symbol, exc)

    def _buy(self, client: Any, trade_logger: TradeLogger | None, inst: Instrument, signal: TradeSignal) -> None:
        assert self.cfg is not None and inst.candle is not None
        base = self.assets[inst.pair.base]
        quote = self.assets[inst.pair.quote]
        flat = sum(1 for i in self.instruments if i.is_flat)
        quote_qty = quote.balance / flat
        if quote_qty <= self.cfg.exchange.min_notional:
            self.logger.info(
                "[%s] %s MIN_NOTIONAL filter: %.4f <= %s",
                fmt_ms(inst.candle.open_time),
                inst.symbol,
                quote_qty,
                self.cfg.exchange.min_notional,
            )
            return

        client.market_buy(inst.symbol, quote_qty)
        self.orders += 1
        inst.apply(signal)
        self.logger.info(
            "[%s] Bought %s with %.4f %s (%s)",
            fmt_ms(inst.candle.open_time),
            base.name,
            quote_qty,
            quote.name,
            inst.position.value,
        )
        self._refresh_balances(client, base, quote)
        if trade_logger is not None:
            trade_logger.log(
                TradeRecord(
                    ts=fmt_ms(inst.candle.open_time),
                    symbol=inst.symbol,
                    side="buy",
                    qty=None,
                    price=inst.candle.close,
                    quote_amount=quote_qty,
                    mode=self.cfg.mode,
                    entry=inst.position.value,
                )
            )

    def _sell(self, client: Any, trade_logger: TradeLogger | None, inst: Instrument, signal: TradeSignal) -> None:
        assert self.cfg is not None and inst.candle is not None
        base = self.assets[inst.pair.base]
        quote = self.assets[inst.pair.quote]
        decimals = inst.step_size if inst.step_size is not None else _DEFAULT_STEP_DECIMALS
        qty = floor_to_decimals(base.balance, decimals)
        net = inst.net_pct()
        entry = inst.position.value

        if qty <= 0:
            self.logger.warning("%s sell signal with zero %s balance, resetting position", inst.symbol, base.name)
            inst.apply(signal)
            return

        client.market_sell(inst.symbol, qty, decimals)
        self.orders += 1
        inst.apply(signal)
        self.logger.info(
            "[%s] Sold %s %s NET: %.1f%%",
            fmt_ms(inst.candle.open_time),
            qty,
            base.name,
            net if net is not None else 0.0,
        )
        base.balance = 0.0
        self._refresh_balances(client, quote)
        if trade_logger is not None:
            trade_logger.log(
                TradeRecord(
                    ts=fmt_ms(inst.candle.open_time),
                    symbol=inst.symbol,
                    side="sell",
                    qty=qty,
                    price=inst.candle.close,
                    quote_amount=None,
                    mode=self.cfg.mode,
                    entry=entry,
                    net_pct=net,
                )
            )

    def _refresh_balances(self, client: Any, *assets: Asset) -> None:
        """成交后回读余额；失败时保留已提交的持仓和缓存余额。"""
        for asset in assets:
            try:
                asset.balance = client.get_balance(asset.name)
            except (RetryableExchangeError, GrammarError) as exc:
                self.logger.warning("Balance refresh failed for %s, keeping cached %s: %s", asset.name, asset.balance, exc)

    def _build_summary(self, ticks: int) -> dict[str, Any]:
        return {
            "ticks": ticks,
            "orders": self.orders,
            "positions": {i.symbol: i.position.value for i in self.instruments},
            "entry_prices": {i.symbol: i.entry_price for i in self.instruments},
            "balances": {name: a.balance for name, a in self.assets.items()},
        }
