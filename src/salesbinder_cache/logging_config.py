"""Logging configuration for the SalesBinder document cache."""

import sys

from loguru import logger

_VERBOSE_FORMAT = "{time:HH:mm:ss} {level.icon} <level>{message}</level> <dim>({name}:{line})</dim>"


def configure_logging(*, verbose: bool = False) -> None:
    """Send logs to stderr so stdout stays clean for JSON output."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_VERBOSE_FORMAT)
    else:
        logger.add(sys.stderr, level="INFO", format="{level.icon} {message}")
