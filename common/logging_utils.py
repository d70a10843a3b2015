from __future__ import annotations

import logging


def setup_logger(name: str = "heart_report", level: int = logging.INFO) -> logging.Logger:
    """Return a logger with a single stream handler.

    Calling it again with the same name returns the already configured logger
    without stacking handlers.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)
    return logger
