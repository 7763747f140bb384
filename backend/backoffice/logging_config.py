"""Logging configuration for the creator back office."""
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncpg", "httpx")


def setup_logging(level: Optional[str] = None, sql_echo: bool = False) -> None:
    """
    Configure process-wide logging once at startup.

    Args:
        level: Level name for the back office and uvicorn loggers, INFO if None
        sql_echo: Let SQLAlchemy engine statements through at INFO
    """
    log_level = logging.getLevelName((level or "INFO").upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.basicConfig(level=log_level, handlers=[handler])

    for name in ("uvicorn", "uvicorn.error", "backoffice", "main"):
        logging.getLogger(name).setLevel(log_level)
    # Access lines duplicate the request logging middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
