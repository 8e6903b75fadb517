from __future__ import annotations

import logging

from utils.logging import setup_logger


def test_setup_logger_is_idempotent(tmp_path):
    log_file = tmp_path / "logs" / "bot.log"
    first = setup_logger("ks-test-logger", log_file=log_file)
    second = setup_logger("ks-test-logger", log_file=log_file)
    assert first is second
    assert len(first.handlers) == 2
    assert sum(isinstance(h, logging.FileHandler) for h in first.handlers) == 1

    first.info("hello %s", "file")
    for h in first.handlers:
        h.flush()
    assert "hello file" in log_file.read_text(encoding="utf-8")

    for h in list(first.handlers):
        h.close()
        first.removeHandler(h)
