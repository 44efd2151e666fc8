import logging

from config.config import LOG_LEVEL

_LOGGERS = {}


def get_logger(name: str) -> logging.Logger:
    """Create or retrieve a named logger writing to the console."""
    if name in _LOGGERS:
        return _LOGGERS[name]

    logger = logging.getLogger(f"tournament.{name}")
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    logger.propagate = False
    _LOGGERS[name] = logger

    return logger
