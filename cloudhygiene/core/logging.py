"""
Logging Configuration Module
============================

Provides centralized logging configuration for Cloud Hygiene.

This module sets up structured logging with:
- Console output with rich formatting
- Optional file logging
- Correlation IDs carried explicitly through the scan pipeline

Functions
---------
setup_logging
    Configure application-wide logging.
get_logger
    Get a logger, optionally bound to a correlation ID.
new_correlation_id
    Generate a fresh correlation ID for one pipeline run.

Example
-------
>>> from cloudhygiene.core.logging import setup_logging, get_logger
>>>
>>> setup_logging(level="INFO", log_file="cloudhygiene.log")
>>>
>>> log = get_logger(__name__, correlation_id="3f2a...")
>>> log.info("Starting scan")  # "[3f2a...] Starting scan"

See Also
--------
logging : Python standard library logging module.
rich.logging : Rich library's logging handler.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, MutableMapping, Optional, Tuple, Union

from rich.console import Console
from rich.logging import RichHandler

# Default format for log messages
DEFAULT_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
) -> None:
    """
    Configure application-wide logging.

    Sets up logging with Rich console handler and optional file handler.
    Should be called once at application startup.

    Parameters
    ----------
    level : str or int, default="INFO"
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    log_file : str, optional
        Path to log file. If provided, logs will be written to this file.
    rich_tracebacks : bool, default=True
        Whether to use Rich for exception tracebacks.
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Notes
    -----
    Existing root handlers are cleared, so repeated calls reconfigure
    rather than duplicate output.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    rich_console = console or Console(stderr=True)
    console_handler = RichHandler(
        console=rich_console,
        show_time=True,
        show_path=False,
        rich_tracebacks=rich_tracebacks,
        tracebacks_show_locals=False,
        markup=False,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)
        )
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    root_logger.debug(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"file={log_file or 'None'}"
    )


def new_correlation_id() -> str:
    """Return a new correlation ID (uuid4 hex)."""
    return uuid.uuid4().hex


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that tags every record with a correlation ID.

    The ID is prefixed to the message and exposed as
    ``record.correlation_id`` for handlers that format it separately.

    Parameters
    ----------
    logger : logging.Logger
        Underlying logger.
    correlation_id : str, optional
        ID of the pipeline run. When omitted, messages pass through unchanged.
    """

    def __init__(
        self,
        logger: logging.Logger,
        correlation_id: Optional[str] = None,
    ) -> None:
        super().__init__(logger, {"correlation_id": correlation_id})
        self.correlation_id = correlation_id

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("correlation_id", self.correlation_id)
        kwargs["extra"] = extra
        if self.correlation_id:
            msg = f"[{self.correlation_id}] {msg}"
        return msg, kwargs


def get_logger(
    name: str,
    correlation_id: Optional[str] = None,
) -> CorrelationAdapter:
    """
    Get a logger for a module, bound to a pipeline correlation ID.

    Parameters
    ----------
    name : str
        Logger name (typically __name__ from the calling module).
    correlation_id : str, optional
        Correlation ID passed down from the caller.

    Returns
    -------
    CorrelationAdapter
        Adapter over ``logging.getLogger(name)``.

    Example
    -------
    >>> log = get_logger(__name__, correlation_id)
    >>> log.info("Persisted scan %s", scan_id)
    """
    return CorrelationAdapter(logging.getLogger(name), correlation_id)
