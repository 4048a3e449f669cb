"""Tests for the ampliplex logging module.

Copyright © 2024 Pixelgen Technologies AB.
"""

import logging
from pathlib import Path

import pytest

from ampliplex.logging import ConsoleFormatter, LoggingSetup
from ampliplex.utils import timer


def test_timer(caplog):
    @timer
    def my_func():
        return "foo"

    with caplog.at_level(logging.INFO):
        res = my_func()
        assert res == "foo"
        assert "Finished ampliplex my_func in" in caplog.text


def test_verbose_logging_is_activated(tmp_path):
    with LoggingSetup(tmp_path / "test.log", verbose=True):
        root_logger = logging.getLogger()
        assert root_logger.getEffectiveLevel() == logging.DEBUG


def test_verbose_logging_is_deactivated(tmp_path):
    with LoggingSetup(tmp_path / "test.log", verbose=False):
        root_logger = logging.getLogger()
        assert root_logger.getEffectiveLevel() == logging.INFO


@pytest.mark.parametrize("verbose", [True, False])
def test_messages_are_written_to_the_log_file(tmp_path, verbose):
    log_file = tmp_path / "test.log"

    with LoggingSetup(log_file, verbose=verbose):
        root_logger = logging.getLogger()
        root_logger.debug("This is a debug message")
        root_logger.info("This is an info message")
        root_logger.warning("This is a warning message")
        root_logger.error("This is an error message")

    log_content = Path(log_file).read_text()
    assert "This is an info message" in log_content
    assert "This is a warning message" in log_content
    assert "This is an error message" in log_content
    if verbose:
        assert "This is a debug message" in log_content
    else:
        assert "This is a debug message" not in log_content


def test_handlers_are_restored(tmp_path):
    root_logger = logging.getLogger()
    before = list(root_logger.handlers)
    with LoggingSetup(tmp_path / "test.log", verbose=False):
        assert root_logger.handlers != before
    assert root_logger.handlers == before


def test_logging_without_file():
    with LoggingSetup(None, verbose=False) as setup:
        assert setup.log_file is None
        assert len(logging.getLogger().handlers) == 1


def _record(level, name="ampliplex.esv.clean", msg="two\nlines"):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


def test_plain_console_format():
    formatter = ConsoleFormatter()
    assert formatter.format(_record(logging.INFO)) == "two\nlines"
    assert formatter.format(_record(logging.WARNING, msg="odd")) == "WARNING: odd"


def test_verbose_console_format():
    formatter = ConsoleFormatter(verbose=True)
    lines = formatter.format(_record(logging.DEBUG)).splitlines()
    assert len(lines) == 2
    assert all("esv.clean: " in line for line in lines)
    assert lines[0].endswith("two")
    assert "ampliplex.esv" not in lines[0]
