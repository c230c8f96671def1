# helix_alm/logger.py

import logging
import os

from .config import Config

CONSOLE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)"
)
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CustomFormatter(logging.Formatter):
    """Colours console records by level. Plain text when colour is off."""

    COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[38;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color=True):
        super().__init__(CONSOLE_FORMAT)
        self.use_color = use_color

    def format(self, record):
        message = super().format(record)
        color = self.COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return message
        return f"{color}{message}{self.RESET}"


def _is_terminal(stream):
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def setup_logger(name, log_file=None, level=logging.INFO):
    """
    Set up a named logger writing to stderr and, if given, to ``log_file``.

    Calling it again for the same name only updates the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console = logging.StreamHandler()
    console.setFormatter(CustomFormatter(use_color=_is_terminal(console.stream)))
    logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


logger = setup_logger(
    "helix_alm",
    Config.LOG_FILE,
    getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
)
