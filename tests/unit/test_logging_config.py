import logging

import pytest

from app.core.logging_config import QUIET_LOGGERS, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_installs_single_console_handler(restore_root_logger):
    setup_logging()
    setup_logging()

    assert len(restore_root_logger.handlers) == 1
    assert restore_root_logger.level == logging.INFO


def test_sweeper_executor_logs_are_quieted(restore_root_logger):
    setup_logging()

    assert logging.getLogger("apscheduler.executors.default").level == logging.WARNING
    for name, level in QUIET_LOGGERS.items():
        assert logging.getLogger(name).level == level
