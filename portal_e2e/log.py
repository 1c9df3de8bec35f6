"""Logging helpers shared by the suite, the fixtures and the cleanup CLI.

Modules log through ``logging.getLogger(__name__)``. On top of the stock
levels there is a SUCCESS level between INFO and WARNING, so a run's audit
trail reads "info, success, warning, error" like the rest of the tooling.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, Union

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_BANNER = "=" * 80


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Configure root logging for standalone entry points.

    Under pytest, ``log_cli`` in pytest.ini takes care of this instead.
    """
    if level is None:
        level = logging.DEBUG if os.getenv("DEBUG", "").lower() == "true" else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def log_success(logger: logging.Logger, msg: str, *args) -> None:
    logger.log(SUCCESS, msg, *args)


def log_step(logger: logging.Logger, number: int, description: str) -> None:
    logger.info("STEP %d: %s", number, description)


def log_test_start(logger: logging.Logger, name: str) -> None:
    logger.info("%s", _BANNER)
    logger.info("Starting test: %s", name)
    logger.info("%s", _BANNER)


def log_test_end(logger: logging.Logger, name: str, passed: bool) -> None:
    level = SUCCESS if passed else logging.ERROR
    logger.log(level, "%s: %s", "PASSED" if passed else "FAILED", name)
