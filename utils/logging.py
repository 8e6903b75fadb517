"""
轻量日志封装。

Notes
-----
`setup_logger` 对同名 logger 幂等：重复调用不会叠加 handler。
可选 `log_file` 额外写入文件（实盘长时间运行时便于回看）。
"""

from __future__ import annotations

import logging
from pathlib import Path

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def setup_logger(
    name: str = "kline-signals",
    level: int = logging.INFO,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    创建或获取命名 logger。

    Parameters
    ----------
    name:
        Logger 名称（按组件命名，例如 "live-engine"）。
    level:
        日志级别，默认 INFO。
    log_file:
        可选日志文件路径；同一路径只挂载一次。

    Returns
    -------
    logging.Logger
        已配置的 logger。
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    fmt = logging.Formatter(_FORMAT)
    has_stream = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if not has_stream:
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    if log_file is not None:
        path = Path(log_file).resolve()
        has_file = any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path
            for h in logger.handlers
        )
        if not has_file:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(path, encoding="utf-8")
            fh.setFormatter(fmt)
            logger.addHandler(fh)

    return logger
