"""Tests for log formatting and setup."""

import json
import logging
import sys

import pytest

from app.core.logging import JsonLineFormatter, get_logger, setup_logging
from app.services.mail import redact_email


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="crewhub.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Account %s locked",
        args=("abc",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_line_carries_context_fields():
    line = json.loads(JsonLineFormatter().format(make_record(user_id="abc", attempts_count=5)))

    assert line["level"] == "WARNING"
    assert line["logger"] == "crewhub.test"
    assert line["msg"] == "Account abc locked"
    assert line["user_id"] == "abc"
    assert line["attempts_count"] == 5
    assert "client_ip" not in line


def test_json_line_includes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = make_record()
        record.exc_info = sys.exc_info()

    line = json.loads(JsonLineFormatter().format(record))
    assert "ValueError: boom" in line["exc"]


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.mark.parametrize("format_type", ["structured", "dev"])
def test_setup_installs_single_handler(restore_root_logger, format_type):
    setup_logging("warning", format_type)
    setup_logging("warning", format_type)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    is_json = isinstance(root.handlers[0].formatter, JsonLineFormatter)
    assert is_json is (format_type == "structured")


def test_library_loggers_follow_debug(restore_root_logger):
    setup_logging("DEBUG")
    assert logging.getLogger("sqlalchemy.engine").level == logging.DEBUG

    setup_logging("INFO")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_get_logger_prefix():
    assert get_logger("main").name == "crewhub.main"


@pytest.mark.parametrize(
    ("email", "expected"),
    [
        ("ada@example.com", "ad***@example.com"),
        ("a@example.com", "a***@example.com"),
        ("not-an-address", "redacted"),
    ],
)
def test_redact_email(email, expected):
    assert redact_email(email) == expected
