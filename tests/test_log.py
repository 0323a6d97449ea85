"""Tests for logging setup."""

import logging
from unittest.mock import patch

from chatmem.log import LOG_FORMAT, setup_logging


def test_explicit_level() -> None:
    with patch("chatmem.log.logging.basicConfig") as basic:
        setup_logging("debug")
    basic.assert_called_once_with(format=LOG_FORMAT, level=logging.DEBUG)


def test_defaults_to_settings_level() -> None:
    with patch("chatmem.log.logging.basicConfig") as basic:
        setup_logging()
    assert basic.call_args.kwargs["level"] == logging.INFO


def test_unknown_level_falls_back_to_info() -> None:
    with patch("chatmem.log.logging.basicConfig") as basic:
        setup_logging("chatty")
    assert basic.call_args.kwargs["level"] == logging.INFO
