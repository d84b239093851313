import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import config

_LOGGER_NAME = "room_allocation"
_LOG_FILE = Path(config.LOG_FILE)


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(config.LOG_LEVEL)
    logger.propagate = False

    try:
        handler = RotatingFileHandler(_LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    except OSError:
        handler = logging.StreamHandler()

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


_logger = _configure_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger sharing the service handler"""
    return _logger.getChild(name)


def format_detail(**fields) -> str:
    return ", ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


def _audit_line(area: str, user: str, action: str, detail: str) -> str:
    message = f"{area.upper()} | User: {user} | Action: {action}"
    if detail:
        message += f" | Detail: {detail}"
    return message


def log_event(area: str, user: str, action: str, detail: str = "") -> None:
    """Audit line for a successful mutation"""
    _logger.info(_audit_line(area, user, action, detail))


def log_error(area: str, user: str, action: str, detail: str = "") -> None:
    _logger.error(_audit_line(area, user, action, detail))
