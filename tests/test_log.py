import logging

import pytest

from autoapply import log as autoapply_log
from autoapply.log import get_logger, setup_file_logging


@pytest.fixture(autouse=True)
def detach_file_handler():
    yield
    handler = autoapply_log._file_handler
    if handler is not None:
        logging.getLogger().removeHandler(handler)
        handler.close()
        autoapply_log._file_handler = None


def test_file_logging_writes_dated_file(tmp_path):
    log_file = setup_file_logging(tmp_path / "logs")
    get_logger("autoapply.test").warning("hello from the file handler")
    autoapply_log._file_handler.flush()

    assert log_file.parent == tmp_path / "logs"
    assert log_file.name.startswith("autoapply_") and log_file.suffix == ".log"
    assert "hello from the file handler" in log_file.read_text(encoding="utf-8")


def test_file_logging_replaces_previous_handler(tmp_path):
    setup_file_logging(tmp_path / "a")
    first = autoapply_log._file_handler
    setup_file_logging(tmp_path / "a")
    assert autoapply_log._file_handler is first

    setup_file_logging(tmp_path / "b")
    root = logging.getLogger()
    assert first not in root.handlers
    assert autoapply_log._file_handler in root.handlers


def test_unwritable_log_dir_is_not_fatal(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    assert setup_file_logging(blocker / "logs") is None
