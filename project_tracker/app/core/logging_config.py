"""
Basic logging configuration for the service layer.

The ``setup_logging`` function configures the root logger with a
console and an optional file handler.  Log format includes the
timestamp, logger name, log level and message.  Every handler gets a
:class:`RedactCredentialsFilter` so that secrets passed as log
arguments or ``extra`` fields never reach the output.  Logging is set
up exactly once per process.
"""

import logging
from pathlib import Path
from typing import Optional

REDACTED = "[REDACTED]"

# Keys whose values must never be written to a log record.
REDACTED_FIELDS = frozenset(
    {"password", "password_hash", "current_password", "new_password", "token"}
)


def _redact_mapping(data: dict) -> dict:
    return {
        key: (REDACTED if key in REDACTED_FIELDS else value)
        for key, value in data.items()
    }


class RedactCredentialsFilter(logging.Filter):
    """Replace credential values on a log record with ``[REDACTED]``.

    Two places are scrubbed: attributes attached through ``extra=``
    (e.g. ``logger.info("...", extra={"password": pw})``) and a single
    mapping passed as the log arguments (``logger.info("%(email)s",
    {"email": e, "password": pw})``).  Positional ``%s`` arguments are
    left alone; callers should not pass secrets positionally.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key in REDACTED_FIELDS:
            if key in record.__dict__:
                setattr(record, key, REDACTED)
        if isinstance(record.args, dict):
            record.args = _redact_mapping(record.args)
        return True


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure root logger.

    If no handlers are attached to the root logger, attach a
    console handler and optionally a file handler.  The root
    logger's level is set based on the provided ``level``.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).  Case
        insensitive.
    logfile : Optional[str]
        Path to a file to log messages to.  If omitted, no file
        handler is added.
    """
    logger = logging.getLogger()
    if logger.handlers:
        # Already configured (tests, repeated embedding).
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    redactor = RedactCredentialsFilter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(redactor)
    logger.addHandler(console_handler)

    if logfile:
        log_path = Path(logfile).resolve()
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(redactor)
        logger.addHandler(file_handler)
