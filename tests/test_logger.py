"""Tests for logger level resolution and handler wiring."""

import logging
import sys

import pytest

from minirag.src.utils.logger import get_logger, resolve_level


class TestResolveLevel:
    @pytest.mark.parametrize("env, expected", [("dev", logging.DEBUG), ("prod", logging.WARNING), ("other", logging.INFO)])
    def test_level_from_env(self, env, expected):
        assert resolve_level(env) == expected

    @pytest.mark.parametrize("log_level, expected", [("ERROR", logging.ERROR), ("info", logging.INFO)])
    def test_explicit_level_wins(self, log_level, expected):
        assert resolve_level("dev", log_level) == expected
        assert resolve_level("prod", log_level) == expected


class TestGetLogger:
    def test_single_stdout_handler(self):
        logger = get_logger("minirag.tests.single")
        again = get_logger("minirag.tests.single")
        assert logger is again
        assert len(logger.handlers) == 1
        assert logger.handlers[0].stream is sys.stdout
        assert logger.propagate is False

    def test_explicit_level(self):
        logger = get_logger("minirag.tests.explicit", level=logging.ERROR)
        assert logger.level == logging.ERROR
        assert logger.handlers[0].level == logging.ERROR
