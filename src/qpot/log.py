import logging
from qpot.paths import PACKAGE_ROOT

log_file = PACKAGE_ROOT / "log.txt"

_format = "%(asctime)s - [%(levelname)s] - %(message)s"
_datefmt = "%m/%d/%Y %H:%M:%S"

# silent unless the application configures logging, or calls log_to_file:
logger = logging.getLogger("qpot")
logger.addHandler(logging.NullHandler())


def log_to_file(filename=log_file, level: int = logging.DEBUG) -> logging.FileHandler:
    """
    Writes qpot records from level up to filename (overwritten).

    Returns:
        the handler, remove it with logger.removeHandler(handler)
    """
    handler = logging.FileHandler(filename, mode="w")
    handler.setFormatter(logging.Formatter(_format, datefmt=_datefmt))
    handler.setLevel(level)

    logger.addHandler(handler)
    logger.setLevel(min(level, logger.getEffectiveLevel()))
    logger.debug("logging to %s", filename)
    return handler
