"""
Request logging for the hydropad API.

Every request writes one pipe-separated line: endpoint, coordinates,
outcome, duration, and either the data source that answered or the error
code that was returned.
"""

import logging
import os
import sys
from pathlib import Path

from hydropad.config.defaults import ENV_LOG_FILE

API_LOGGER_NAME = "hydropad.api"
LOG_FORMAT = "%(asctime)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file: str | Path | None = None) -> logging.Logger:
    """
    Configure the ``hydropad.api`` request logger.

    Args:
        log_file: Extra log file; defaults to HYDROPAD_LOG_FILE when set

    Returns:
        The configured logger. Calling this again replaces its handlers.
    """
    logger = logging.getLogger(API_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    log_file = log_file or os.getenv(ENV_LOG_FILE)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def format_request_line(
    endpoint: str,
    lat: float | None,
    lon: float | None,
    status: str,
    duration_seconds: float,
    source: str | None = None,
    error_code: str | None = None,
) -> str:
    """
    Build a request log line.

    Example:
        >>> format_request_line("delineate", 40.44, -79.99, "SUCCESS", 1.23, source="streamstats")
        'delineate | 40.44, -79.99 | SUCCESS | 1.2s | source=streamstats'
        >>> format_request_line("landuse", None, None, "ERROR", 0.4, error_code="UPSTREAM_SHAPE")
        'landuse | - | ERROR | 0.4s | UPSTREAM_SHAPE'
    """
    location = "-" if lat is None or lon is None else f"{lat}, {lon}"
    outcome = f"source={source or '-'}" if status == "SUCCESS" else (error_code or "-")
    return f"{endpoint} | {location} | {status} | {duration_seconds:.1f}s | {outcome}"


def log_request(
    logger: logging.Logger,
    endpoint: str,
    lat: float | None,
    lon: float | None,
    status: str,
    duration_seconds: float,
    source: str | None = None,
    error_code: str | None = None,
) -> None:
    """Write one request line; failures are logged at WARNING."""
    line = format_request_line(endpoint, lat, lon, status, duration_seconds, source=source, error_code=error_code)
    logger.log(logging.INFO if status == "SUCCESS" else logging.WARNING, line)
