"""
localscribe.logging - Package logger and verbosity setup.

Modules log through children of the "localscribe" logger. The model stack
(transformers, huggingface_hub, faster_whisper) is chatty at INFO, so it is
held at WARNING unless verbose output was asked for.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("localscribe")

NOISY_LOGGERS = ("transformers", "huggingface_hub", "faster_whisper", "httpx", "urllib3")


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``localscribe.controller``."""
    return logger.getChild(name)


def configure_logging(verbose: bool = False) -> None:
    """Set up console logging for CLI and server runs.

    Args:
        verbose: DEBUG for localscribe and INFO for the model stack;
            otherwise WARNING everywhere
    """
    level = logging.DEBUG if verbose else logging.WARNING
    fmt = "%(levelname)s %(name)s: %(message)s" if verbose else "%(levelname)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)
    logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
