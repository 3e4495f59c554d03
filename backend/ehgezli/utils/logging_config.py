import logging

from ..config import get_settings


def setup_logging() -> logging.Logger:
    logger = logging.getLogger("ehgezli")
    if logger.handlers:
        return logger

    level = getattr(logging, get_settings().log_level, logging.INFO)
    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(console_handler)
    return logger
