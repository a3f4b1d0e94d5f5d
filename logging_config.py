"""Logging setup shared by the API and the delivery worker."""

import logging
import sys

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = ("sqlalchemy.engine", "passlib", "multipart", "python_multipart")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging to stdout.

    Args:
        level: Level name for application loggers (default: INFO)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL statements are logged through engine echo (SQL_ECHO), not these loggers.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
