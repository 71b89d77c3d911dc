"""
Logging configuration for the feed builder.

Everything goes to stderr; stdout carries only the final "Wrote ..." line.
"""
import logging
import sys


def setup_logger(name: str = "hotfeed", level: str = "INFO") -> logging.Logger:
    """Set up and return a configured logger."""
    logger = logging.getLogger(name)

    # Clear any existing handlers so repeated calls don't duplicate output
    logger.handlers.clear()

    numeric = logging.getLevelName((level or "INFO").upper())
    logger.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] %(levelname)-8s %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    return logger
