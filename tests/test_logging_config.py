import logging

import structlog

from procura.core.logging_config import setup_logging


def test_setup_logging_sets_root_level():
    setup_logging("debug", json_logs=False)

    assert logging.getLogger().level == logging.DEBUG
    assert structlog.is_configured()

    setup_logging("WARNING")

    assert logging.getLogger().level == logging.WARNING


def test_unknown_level_falls_back_to_info():
    setup_logging("chatty")

    assert logging.getLogger().level == logging.INFO
