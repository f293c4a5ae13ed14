# app/utils/logger.py

import logging
import sys

from app.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(level: str = LOG_LEVEL):
    """
    Configure the root logger once for the whole backend.
    Modules log through logging.getLogger(__name__).
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Remove existing handlers so a reload does not duplicate output
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console_handler)

    # Keep access logs quiet unless debugging
    if root.level > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root
