import logging
import sys
import os
from logging.handlers import RotatingFileHandler

from epub_counter.config import settings

# Define log directory and file
LOG_DIR = str(settings.LOG_DIR)
LOG_FILE = os.path.join(LOG_DIR, "app.log")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s"


def setup_logging(level=None, log_to_file=True):
    """
    Configures logging for the application.
    Outputs to console and (optionally) a rotating file with a detailed format.

    The server calls this with defaults at import time; the CLI passes its own
    level and usually skips the file handler so a one-off run does not need a
    writable log directory.
    """
    level = level or settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    log_formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid adding handlers multiple times
    has_console_handler = any(
        isinstance(h, logging.StreamHandler)
        and not isinstance(h, logging.FileHandler)
        and getattr(h, "stream", None) is sys.stdout
        for h in root_logger.handlers
    )
    if not has_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(log_formatter)
        root_logger.addHandler(console_handler)

    if log_to_file:
        has_file_handler = any(isinstance(h, logging.FileHandler) for h in root_logger.handlers)
        if not has_file_handler:
            os.makedirs(LOG_DIR, exist_ok=True)
            # 5MB per file, 2 backups
            file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1024 * 1024 * 5, backupCount=2, encoding="utf-8")
            file_handler.setFormatter(log_formatter)
            root_logger.addHandler(file_handler)

    # Configure specific loggers
    logging.getLogger("epub_counter").setLevel(level)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("ebooklib").setLevel(logging.WARNING)

    logging.debug("Logging configured (level=%s, file=%s).", logging.getLevelName(level), log_to_file)
