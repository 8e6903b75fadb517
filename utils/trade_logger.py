"""成交流水持久化（CSV，按 UTC 日期切文件）。"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional, TextIO

FIELDS = ["ts", "symbol", "side", "entry", "qty", "price", "quote_amount", "net_pct", "mode"]


def _num(value: float | None, digits: int) -> str:
    return "" if value is None else f"{value:.{digits}f}"


@dataclass
class TradeRecord:
    """单笔成交。

    qty 为基础资产数量（卖出时有值），quote_amount 为计价资产金额（买入时有值）；
    net_pct 为卖出价相对入场价的涨跌幅（百分比）。
    """
    ts: Any
    symbol: str
    side: str
    qty: float | None
    price: float
    quote_amount: float | None
    mode: str
    entry: str = ""
    net_pct: float | None = None

    def to_row(self) -> dict[str, str]:
        ts = self.ts.strftime("%Y-%m-%d %H:%M:%S") if isinstance(self.ts, datetime) else str(self.ts)
        return {
            "ts": ts,
            "symbol": self.symbol,
            "side": self.side,
            "entry": self.entry,
            "qty": _num(self.qty, 8),
            "price": _num(self.price, 8),
            "quote_amount": _num(self.quote_amount, 8),
            "net_pct": _num(self.net_pct, 2),
            "mode": self.mode,
        }


class TradeLogger:
    """`trades_YYYY-MM-DD.csv` 追加写；跨日自动切换文件，新文件先写表头。

    Parameters
    ----------
    base_dir:
        输出目录，不存在时创建。
    """

    def __init__(self, base_dir: str | Path = "data/trades"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._day: date | None = None
        self._file: Optional[TextIO] = None
        self._writer: Optional[csv.DictWriter] = None

    def path_for(self, day: date) -> Path:
        return self.base_dir / f"trades_{day.isoformat()}.csv"

    def _writer_for(self, day: date) -> csv.DictWriter:
        if self._writer is not None and self._day == day:
            return self._writer
        self.close()
        path = self.path_for(day)
        fresh = not path.exists()
        self._file = path.open("a", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._file, fieldnames=FIELDS)
        if fresh:
            self._writer.writeheader()
        self._day = day
        return self._writer

    def log(self, record: TradeRecord) -> None:
        writer = self._writer_for(datetime.now(timezone.utc).date())
        writer.writerow(record.to_row())
        assert self._file is not None
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self._writer = None
