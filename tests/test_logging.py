# tests/test_logging.py

from __future__ import annotations

import logging

from gedcom_import.logging import BASE_LOGGER_NAME, get_logger, set_console_level


def test_component_loggers_live_under_the_base_logger():
    log = get_logger("matcher")
    assert log.name == "gedcom_import.matcher"
    assert log.propagate is True
    assert get_logger("gedcom_import.matcher") is log
    assert get_logger().name == BASE_LOGGER_NAME


def test_component_file_handler_is_attached_once():
    first = get_logger("pipeline")
    get_logger("pipeline")
    files = [h for h in first.handlers if getattr(h, "component_file", False)]
    assert len(files) == 1


def test_console_level_can_be_raised_and_lowered():
    base = get_logger()
    console = [h for h in base.handlers if type(h) is logging.StreamHandler][0]

    set_console_level(logging.INFO)
    assert console.level == logging.INFO
    set_console_level(logging.WARNING)
    assert console.level == logging.WARNING
