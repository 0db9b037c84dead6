"""Logging configuration."""

import logging
import sys
from pathlib import Path

from mentora.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging() -> None:
    """Send application logs to stdout and ``logs/mentora.log``.

    Safe to call more than once; handlers are only attached the first time.
    """
    global _configured
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not _configured:
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

        for handler in (
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_dir / "mentora.log"),
        ):
            handler.setLevel(log_level)
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
        _configured = True

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    # One INFO line per HTTP request to the provider otherwise
    for name in ("httpx", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.ENVIRONMENT == "development" else logging.WARNING
    )
