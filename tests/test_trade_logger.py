from __future__ import annotations

import csv
from datetime import datetime, timezone

from utils.trade_logger import TradeLogger, TradeRecord


def test_trade_logger_writes_daily_csv(tmp_path):
    tl = TradeLogger(tmp_path / "trades")
    tl.log(
        TradeRecord(
            ts=datetime(2021, 1, 15, 8, 0, tzinfo=timezone.utc),
            symbol="BNBUSDT",
            side="buy",
            qty=None,
            price=40.5,
            quote_amount=100.0,
            mode="dry-run",
            entry="dip",
        )
    )
    tl.log(
        TradeRecord(
            ts="2021-01-15 09:00:00",
            symbol="BNBUSDT",
            side="sell",
            qty=2.469,
            price=42.0,
            quote_amount=None,
            mode="dry-run",
            entry="dip",
            net_pct=3.7037,
        )
    )
    tl.close()

    path = tl.path_for(datetime.now(timezone.utc).date())
    with path.open(encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert [r["side"] for r in rows] == ["buy", "sell"]
    assert rows[0]["ts"] == "2021-01-15 08:00:00"
    assert rows[0]["qty"] == ""
    assert rows[0]["quote_amount"] == "100.00000000"
    assert rows[1]["net_pct"] == "3.70"
    assert rows[1]["entry"] == "dip"
