"""kline-signals 命令行入口。

子命令：

- `runner`：实盘 / 干跑轮询循环（按 K 线收盘轮询交易所、执行策略、下单）；
- `backtest`：单品种历史回放，输出 ROI；
- `test`：运行 pytest（默认跳过 live 测试）。

`--config` 放在子命令前后均可。
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Any, Callable

from rich.console import Console
from rich.table import Table

from engine.live_engine import LiveEngine
from engine.replay_engine import ReplayEngine

DEFAULT_CONFIG = "config/config.yml"


@dataclass
class CliArgs:
    """解析后的命令行参数。

    max_ticks 只对 runner 有意义；include_live_tests 只对 test 有意义。
    """
    config: str
    task: str
    max_ticks: int | None = None
    include_live_tests: bool = False


def build_parser() -> argparse.ArgumentParser:
    # 子命令上的 --config 用 SUPPRESS，未给出时不会覆盖全局值
    sub_config = argparse.ArgumentParser(add_help=False)
    sub_config.add_argument("--config", default=argparse.SUPPRESS, help="配置文件路径")

    parser = argparse.ArgumentParser(prog="kline-signals", description="K 线信号交易机器人")
    parser.add_argument("--config", default=DEFAULT_CONFIG, help=f"配置文件路径 (默认: {DEFAULT_CONFIG})")
    sub = parser.add_subparsers(dest="task")

    runner = sub.add_parser("runner", parents=[sub_config], help="实盘/干跑轮询循环")
    runner.add_argument("--max-ticks", type=int, default=None, help="跑多少个 tick 后退出")

    sub.add_parser("backtest", parents=[sub_config], help="历史回放")

    test = sub.add_parser("test", parents=[sub_config], help="运行 pytest")
    test.add_argument("--include-live", action="store_true", help="包含 @pytest.mark.live 测试（会联网）")
    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    ns = build_parser().parse_args(argv)
    return CliArgs(
        config=str(getattr(ns, "config", DEFAULT_CONFIG)),
        task=ns.task or "runner",
        max_ticks=getattr(ns, "max_ticks", None),
        include_live_tests=bool(getattr(ns, "include_live", False)),
    )


def render_backtest_summary(summary: dict[str, Any], console: Console | None = None) -> None:
    """用 rich 表格打印回放结果。"""
    table = Table(title=f"Replay {summary.get('symbol', '')} {summary.get('interval', '')}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key in ("start", "end", "candles", "trades", "position", "final_value", "roi_pct"):
        if key not in summary:
            continue
        value = summary[key]
        if key == "roi_pct":
            text = f"{value:.1f}%"
        elif isinstance(value, float):
            text = f"{value:.4f}"
        else:
            text = str(value)
        table.add_row(key, text)
    (console or Console()).print(table)


def _run_runner(args: CliArgs) -> dict[str, Any]:
    return LiveEngine(cfg_path=args.config, max_ticks=args.max_ticks).run().summary


def _run_backtest(args: CliArgs) -> dict[str, Any]:
    summary = ReplayEngine(cfg_path=args.config).run().summary
    render_backtest_summary(summary)
    return summary


def _run_tests(args: CliArgs) -> int:
    import pytest

    # pyproject 的 addopts 默认带 `-m 'not live'`，这里显式覆盖
    marker = "live or not live" if args.include_live_tests else "not live"
    return pytest.main(["-q", "-m", marker])


_TASKS: dict[str, Callable[[CliArgs], Any]] = {
    "runner": _run_runner,
    "backtest": _run_backtest,
    "test": _run_tests,
}


def main(argv: list[str] | None = None) -> Any:
    """程序主入口；返回子命令结果（runner/backtest 为 summary，test 为 pytest 退出码）。"""
    args = parse_args(argv)
    handler = _TASKS.get(args.task)
    if handler is None:
        raise ValueError(f"Unknown task: {args.task}")
    return handler(args)


if __name__ == "__main__":
    main()
