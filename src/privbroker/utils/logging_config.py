"""Logging configuration for privbroker.

Provides centralized logging setup for the CLI, for library use and for the
askpass helper. The helper's stdout is the channel sudo reads the password
from, so its logging must only ever go to stderr.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console_output: bool = True,
    format_string: Optional[str] = None
) -> None:
    """Configure logging for privbroker.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to write logs to file.
        console_output: Whether to output logs to stderr.
        format_string: Custom format string (uses default if None).
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(format_string))
        root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))
        root_logger.addHandler(file_handler)


def setup_cli_logging(verbose: bool = False, quiet: bool = False, log_file: Optional[Path] = None) -> None:
    """Convenience function for CLI logging setup.

    Args:
        verbose: Enable verbose (DEBUG) logging.
        quiet: Suppress most logging (WARNING and above only).
        log_file: Also write log records to this file.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    setup_logging(
        level=level,
        log_file=log_file,
        console_output=True,
        format_string='%(levelname)s: %(message)s'
    )


def setup_askpass_logging() -> None:
    """Logging for the askpass helper: stderr only, quiet unless asked.

    PRIVBROKER_ASKPASS_DEBUG=1 raises the level to DEBUG.
    """
    debug = os.environ.get('PRIVBROKER_ASKPASS_DEBUG', '') not in ('', '0', 'false', 'False')
    setup_logging(
        level=logging.DEBUG if debug else logging.WARNING,
        console_output=True,
        format_string='privbroker-askpass: %(levelname)s: %(message)s'
    )

