"""
Logging setup shared by the API and the client package.
Modules log through child loggers of ``interlinc`` (e.g. ``interlinc.approval``).
"""
import logging

from config import settings

logger = logging.getLogger("interlinc")
logger.setLevel(settings.log_level.upper())

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the ``interlinc`` logger."""
    return logger.getChild(name)
