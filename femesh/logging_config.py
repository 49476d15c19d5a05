"""
Console (and optional file) output for the 'femesh' logger tree. The modules only create their loggers with
logging.getLogger(__name__); nothing is printed until an application calls setup_logging().
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attaches handlers to the 'femesh' logger. Calling it again replaces the handlers of the previous call.

    Parameters:
    -----------
    level: int
        threshold for the logger and all of its handlers
    log_file: str, optional
        the log is also written to this file, which is truncated first

    Returns:
    -----------
    the 'femesh' logger
    """
    root = logging.getLogger("femesh")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.debug("Logging to %d handler(s) at level %s", len(handlers), logging.getLevelName(level))
    return root
