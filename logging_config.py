"""
Logging setup for the visit dashboard and report runs.

The calculators only ever call logging.getLogger(__name__); the entry point
configures the root logger once. The level comes from, in order:
1. the --log-level command-line argument
2. the LOG_LEVEL environment variable
3. INFO

Third-party loggers that are chatty at DEBUG (the HTTP connection pool used by
requests, reportlab's font handling) stay at WARNING unless asked otherwise.

Usage:
    from logging_config import add_log_level_argument, configure_logging

    parser = argparse.ArgumentParser(description="RPTRA Visit Dashboard")
    add_log_level_argument(parser)
    args = parser.parse_args()
    configure_logging(log_level=args.log_level)

Example:
    $ LOG_LEVEL=DEBUG visit-dashboard --demo
    $ visit-dashboard --demo --log-level WARNING   # CLI wins over LOG_LEVEL
"""

import os
import logging
import argparse
from typing import Iterable, Optional, Tuple

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
DEFAULT_LOG_LEVEL = 'INFO'
LOG_LEVEL_ENV_VAR = 'LOG_LEVEL'

STANDARD_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DETAILED_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(funcName)s:%(lineno)d - %(message)s'

NOISY_LOGGERS = ('urllib3', 'reportlab')


def _resolve_level_name(cli_level: Optional[str]) -> Tuple[str, str]:
    """Pick the level name and where it came from."""
    if cli_level:
        return cli_level.upper(), "command-line"
    env_level = os.getenv(LOG_LEVEL_ENV_VAR)
    if env_level:
        return env_level.strip().upper(), "environment variable"
    return DEFAULT_LOG_LEVEL, "default"


def get_log_level(cli_level: Optional[str] = None) -> int:
    """
    Determine the numeric log level for a run.

    Args:
        cli_level: Value of --log-level, if given.

    Returns:
        The logging level constant, e.g. logging.DEBUG.

    Raises:
        ValueError: If the level name is not one of VALID_LOG_LEVELS.
    """
    level_name, source = _resolve_level_name(cli_level)
    if level_name not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level from {source}: '{level_name}'. "
            f"Valid levels are: {', '.join(VALID_LOG_LEVELS)}"
        )
    return getattr(logging, level_name)


class DetailedErrorFormatter(logging.Formatter):
    """Single-line records, with function and line number added from ERROR up."""

    def __init__(self, datefmt: Optional[str] = None):
        super().__init__(fmt=STANDARD_LOG_FORMAT, datefmt=datefmt)
        self._detailed = logging.Formatter(fmt=DETAILED_LOG_FORMAT, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return self._detailed.format(record)
        return super().format(record)


def _make_handler(handler: logging.Handler, level: int,
                  formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    log_file: Optional[str] = None,
    log_level: Optional[str] = None,
    use_detailed_formatter: bool = True,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure the root logger for a dashboard or report run.

    Replaces any existing root handlers with a console handler and, when
    log_file is given, a file handler.

    Args:
        log_file: Optional path of a log file.
        log_level: Value of --log-level, if given.
        use_detailed_formatter: Add function/line context to ERROR records.
        quiet_loggers: Logger names held at WARNING or above.

    Returns:
        The configured root logger.
    """
    level = get_log_level(log_level)
    formatter = DetailedErrorFormatter() if use_detailed_formatter else logging.Formatter(STANDARD_LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(_make_handler(logging.StreamHandler(), level, formatter))
    if log_file:
        root_logger.addHandler(_make_handler(logging.FileHandler(log_file, encoding='utf-8'), level, formatter))

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _, source = _resolve_level_name(log_level)
    root_logger.debug(f"Logging configured: level={logging.getLevelName(level)} (from {source})")
    return root_logger


def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    """Add the --log-level option to an ArgumentParser."""
    parser.add_argument(
        '--log-level',
        choices=VALID_LOG_LEVELS,
        type=str.upper,
        default=None,
        metavar='LEVEL',
        help=(
            f"Logging verbosity ({', '.join(VALID_LOG_LEVELS)}). "
            f"Overrides the {LOG_LEVEL_ENV_VAR} environment variable. "
            f"Default: {DEFAULT_LOG_LEVEL}"
        )
    )
