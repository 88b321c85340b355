from __future__ import annotations

import json
import logging
import sys

_ROOT = "bmad"
_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping from CI installs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": record.created,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        file_path = getattr(record, "file_path", None)
        if file_path is not None:
            payload["file_path"] = str(file_path)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """Configure and return the root bmad logger.

    Calling this more than once is harmless: an already configured
    logger is returned untouched.
    """
    logger = logging.getLogger(_ROOT)

    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the bmad namespace."""
    return logging.getLogger(f"{_ROOT}.{name}")


def set_level(name: str, level: int | str) -> int:
    """Set the level of ``bmad.<name>`` and return the previous level."""
    logger = get_logger(name)
    previous = logger.level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    return previous
