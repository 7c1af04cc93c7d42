import logging

from aninotion.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stream handler to the ``aninotion`` logger tree (once)."""
    logger = logging.getLogger("aninotion")
    logger.setLevel((level or LOG_LEVEL).upper())
    if not any(getattr(h, "_aninotion", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._aninotion = True
        logger.addHandler(handler)
    return logger
