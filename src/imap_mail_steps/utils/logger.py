"""Logging configuration utility."""

import logging
import sys


def setup_logging(verbose=False, quiet=False):
    """Configure root logger with appropriate level and format.

    Logs go to stderr; stdout carries the step output JSON.
    """
    if quiet:
        level = logging.WARNING
    else:
        level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
