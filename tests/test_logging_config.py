"""Tests for the CLI logging setup."""

import io
import sys

import structlog

from mcpdecl.logging_config import DEBUG_ENV_VAR, configure_logging


def test_logs_follow_the_current_stderr(monkeypatch):
    first = io.StringIO()
    monkeypatch.setattr(sys, "stderr", first)
    configure_logging()
    structlog.get_logger("mcpdecl.test").warning("first stream", n=1)
    assert "first stream" in first.getvalue()

    second = io.StringIO()
    monkeypatch.setattr(sys, "stderr", second)
    first.close()
    structlog.get_logger("mcpdecl.test").warning("second stream", n=2)
    assert "second stream" in second.getvalue()
    assert "n=2" in second.getvalue()


def test_debug_level_from_environment(monkeypatch):
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)
    configure_logging()
    structlog.get_logger("mcpdecl.test").debug("hidden at info")
    assert stream.getvalue() == ""

    monkeypatch.setenv(DEBUG_ENV_VAR, "1")
    configure_logging()
    structlog.get_logger("mcpdecl.test").debug("shown at debug")
    assert "shown at debug" in stream.getvalue()
