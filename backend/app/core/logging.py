"""Log output for the CrewHub API.

Two shapes: readable lines for local runs and one JSON object per line for
log shippers. Context passed through ``extra=`` (user id, client address,
attempt counts) is carried into the JSON output.
"""

import json
import logging
import sys
from typing import Literal

LOGGER_PREFIX = "crewhub"

READABLE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Extra fields copied into JSON lines when a call site supplies them
CONTEXT_FIELDS = ("user_id", "client_ip", "path", "attempts_count")

# Third-party loggers and the level they run at outside DEBUG
LIBRARY_LEVELS = {
    "uvicorn": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class JsonLineFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                line[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            line["exc"] = self.formatException(record.exc_info)
        return json.dumps(line, default=str)


def _build_handler(format_type: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(READABLE_FORMAT, datefmt="%H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """Install a single stdout handler on the root logger.

    Calling it again replaces the handler, so the lifespan can run more
    than once in one process (tests, reloads).
    """
    level = level.upper()
    root = logging.getLogger()
    root.handlers = [_build_handler(format_type)]
    root.setLevel(level)

    for name, quiet_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(logging.DEBUG if level == "DEBUG" else quiet_level)

    get_logger("logging").info(f"Logging ready (level={level}, format={format_type})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
