"""
Logging configuration for the NextPrepBD accounts service.

Console output plus two rotating files (everything, and errors only).
Invitation and recovery links are bearer credentials, so every handler
masks ``token=`` values and bearer headers before a record is written.
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent.parent / "logs"

MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SECRET_PATTERNS = (
    re.compile(r"(token=)[^&\s\"']+"),
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-_.]+"),
)

# Third-party loggers and the level they are held at
_QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "apscheduler": logging.WARNING,
    "httpx": logging.WARNING,
    "python_http_client": logging.WARNING,
}


class SecretRedactingFilter(logging.Filter):
    """Mask link tokens and bearer credentials in formatted messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub(r"\1[redacted]", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _configure(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(SecretRedactingFilter())
    return handler


def get_file_handler(filename: str, level: int = logging.DEBUG) -> RotatingFileHandler:
    """Create a rotating file handler under ``LOG_DIR``."""
    LOG_DIR.mkdir(exist_ok=True)
    handler = RotatingFileHandler(
        LOG_DIR / filename,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    return _configure(handler, level)


def get_console_handler(level: int = logging.INFO) -> logging.StreamHandler:
    return _configure(logging.StreamHandler(sys.stdout), level)


def setup_logging(
    app_name: str = "nextprep",
    log_level: str = "",
    environment: str = "development",
    enable_console: bool = True,
    enable_file: bool = True,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        app_name: Prefix for the log file names
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Empty means WARNING in production and DEBUG elsewhere.
        environment: development, production or test
        enable_console: Attach a stdout handler
        enable_file: Attach the rotating file handlers

    Returns:
        The configured root logger
    """
    if not log_level:
        log_level = "WARNING" if environment == "production" else "DEBUG"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    if enable_console:
        root_logger.addHandler(get_console_handler(numeric_level))

    if enable_file:
        root_logger.addHandler(get_file_handler(f"{app_name}.log", logging.DEBUG))
        root_logger.addHandler(get_file_handler(f"{app_name}_error.log", logging.ERROR))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class RequestLogger:
    """Writes one line per HTTP request, at a level matching the status class."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        client_ip: str | None = None,
        user_id: str | None = None,
    ):
        context = []
        if client_ip:
            context.append(f"ip={client_ip}")
        if user_id:
            context.append(f"user={user_id}")
        line = f"{method} {path} -> {status_code} ({duration_ms:.2f}ms) {' | '.join(context)}".rstrip()

        if status_code >= 500:
            self.logger.error(line)
        elif status_code >= 400:
            self.logger.warning(line)
        else:
            self.logger.info(line)
