from __future__ import annotations

import logging
from io import StringIO

from supasheet.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    set_debug,
    setup_logging,
)


def test_setup_logging_is_idempotent():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert setup_logging() is logger
    assert len(logger.handlers) == 1
    assert get_logger() is logger


def test_labeled_prefixes(capsys):
    logger = setup_logging()
    logger.info("hello")
    logger.warning("careful")
    logger.error("broken")
    log_summary("sheets=1 tables=1")
    logger.debug("hidden")
    out = capsys.readouterr().out.splitlines()
    assert out == ["INFO hello", "WARN careful", "ERROR broken", "SUMMARY sheets=1 tables=1"]


def test_module_loggers_propagate_into_tool_logger(capsys):
    setup_logging()
    logging.getLogger("supasheet.services.loader").info("from module")
    assert capsys.readouterr().out == "INFO from module\n"


def test_set_debug_shows_debug_and_traceback():
    logger = setup_logging()
    stream = StringIO()
    logger.handlers[0].setStream(stream)
    set_debug(True)
    try:
        raise ValueError("bad")
    except ValueError:
        logger.debug("details", exc_info=True)
    text = stream.getvalue()
    assert text.startswith("DEBUG details\n")
    assert "ValueError: bad" in text
    set_debug(False)
    assert logger.level == logging.INFO


def test_traceback_hidden_above_debug():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "oops", None, (ValueError, ValueError("v"), None))
    assert LabeledFormatter().format(record) == "ERROR oops"
    summary = logging.LogRecord("x", SUMMARY_LEVEL, __file__, 1, "done", None, None)
    assert LabeledFormatter().format(summary) == "SUMMARY done"
