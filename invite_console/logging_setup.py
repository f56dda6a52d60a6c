"""
Configure logging for the application.

This module sets up the console's logging infrastructure with both file and stdout output.
It configures:
- A rotating file handler to manage log files
- A console handler for immediate feedback
- Log level based on debug mode configuration
- Custom log format with timestamps and source information
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional

from invite_console.config import get_config_value

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def _resolve_log_level() -> int:
    # debug_mode wins over log_level
    if get_config_value("console_settings.debug_mode", False):
        return logging.DEBUG
    level_name = str(get_config_value("console_settings.log_level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_file: Optional[str] = None) -> None:
    """
    Configure logging with rotating file and stream handlers.

    This function sets up the logging system with:
    - A root logger configured with the appropriate log level
    - A rotating file handler that limits log file size and keeps backups
    - A console output handler for immediate feedback
    - Proper error handling for file access issues
    """
    log_level = _resolve_log_level()
    log_formatter = logging.Formatter(LOG_FORMAT)

    # Root logger setup
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()  # Drop handlers left by an earlier setup

    # Fallback to a default name if config is not loaded or the value is bad
    log_file = log_file or get_config_value(
        "console_settings.log_file_name", "invite_console.log"
    )
    if not isinstance(log_file, str) or not log_file:
        log_file = "fallback_console.log"

    # Ensure the log directory exists if the file name includes a path
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir)
        except OSError as e:
            print(
                f"Could not create log directory {log_dir}: {e}. Using current directory for logs.",
                file=sys.stderr,
            )
            log_file = os.path.basename(log_file)  # Fall back to current dir

    # Rotates log file when it reaches 5MB, keeps 5 backup files
    try:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(log_formatter)
        root_logger.addHandler(file_handler)
    except PermissionError:
        print(
            f"Error: Permission denied writing log file to {log_file}. Check permissions.",
            file=sys.stderr,
        )
    except OSError as e:  # Console logging still works below
        print(f"Error setting up file logger: {e}", file=sys.stderr)

    # Stream handler for console output
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(log_formatter)
    root_logger.addHandler(stream_handler)

    # Use the root logger to signal completion
    logging.info(
        f"Logging setup complete. Level: {logging.getLevelName(log_level)}, File: {log_file}"
    )
