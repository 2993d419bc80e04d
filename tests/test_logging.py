"""Tests for logging setup and the timing decorator."""

import sys
import os
import logging

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from synchronizer.utils.logging import setup_logging, get_logger, timed


def test_repeated_setup_replaces_handlers(tmp_path):
    setup_logging(log_level="INFO")
    once = len(logging.getLogger().handlers)

    setup_logging(log_level="DEBUG", log_file=str(tmp_path / "logs" / "sync.log"))
    setup_logging(log_level="DEBUG", log_file=str(tmp_path / "logs" / "sync.log"))

    assert len(logging.getLogger().handlers) == once + 1
    assert logging.getLogger().level == logging.DEBUG
    assert (tmp_path / "logs").is_dir()

    setup_logging(log_level="INFO")
    assert len(logging.getLogger().handlers) == once


def test_file_handler_writes_plain_lines(tmp_path):
    log_file = tmp_path / "sync.log"
    setup_logging(log_level="INFO", log_format="json", log_file=str(log_file))

    get_logger("test_file_handler").info("✅ file logging works", files=3)
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "file logging works" in content
    assert "[test_file_handler]" in content
    assert "\x1b[" not in content

    setup_logging(log_level="INFO")


def test_timed_returns_result_and_reraises():
    setup_logging(log_level="DEBUG")

    @timed("addition")
    def add(a, b):
        return a + b

    @timed("division")
    def divide(a, b):
        return a / b

    assert add(2, 3) == 5
    assert add.__name__ == "add"
    with pytest.raises(ZeroDivisionError):
        divide(1, 0)

    setup_logging(log_level="INFO")


async def test_timed_wraps_coroutines():
    calls = []

    @timed("async step")
    async def step(value):
        calls.append(value)
        return value * 2

    @timed("async failure")
    async def broken():
        raise RuntimeError("boom")

    assert await step(4) == 8
    assert calls == [4]
    with pytest.raises(RuntimeError, match="boom"):
        await broken()
