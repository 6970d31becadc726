"""
Application logger.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("univibe")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the univibe logger once."""
    if not any(getattr(h, "_univibe", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._univibe = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
