import logging

import pytest

from inbox_classifier.cli import _HttpxRequestInfoToDebugFilter, setup_logging


def _record(name: str, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def root_level():
    root_logger = logging.getLogger()
    previous_level = root_logger.level
    yield root_logger
    root_logger.setLevel(previous_level)


def test_sdk_request_lines_only_show_in_debug(root_level) -> None:
    """OpenAI/Groq request logs are hidden unless running at DEBUG."""

    record = _record(
        "httpx", 'HTTP Request: POST https://api.openai.com/v1/chat/completions "HTTP/1.1 200 OK"'
    )
    f = _HttpxRequestInfoToDebugFilter()

    root_level.setLevel(logging.INFO)
    assert f.filter(record) is False

    root_level.setLevel(logging.DEBUG)
    assert f.filter(record) is True


def test_other_records_pass_through(root_level) -> None:
    root_level.setLevel(logging.INFO)
    f = _HttpxRequestInfoToDebugFilter()

    assert f.filter(_record("inbox_classifier.batch", "HTTP Request: not httpx")) is True
    assert f.filter(_record("httpx", "connection pool closed")) is True


def test_setup_logging_installs_filter_on_root_handlers(root_level) -> None:
    previous_handlers = list(root_level.handlers)
    root_level.handlers = []
    try:
        setup_logging("WARNING")

        assert root_level.level == logging.WARNING
        assert root_level.handlers
        for handler in root_level.handlers:
            assert any(
                isinstance(f, _HttpxRequestInfoToDebugFilter) for f in handler.filters
            )
    finally:
        root_level.handlers = previous_handlers
