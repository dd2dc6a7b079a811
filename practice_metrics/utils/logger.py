#!/usr/bin/env python3
"""
Logging utility for the Practice Metrics dashboard

Console logging for progress, optional file logging with full detail.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime


def setup_logging(log_level: str = "INFO",
                  log_file: Optional[str] = None,
                  log_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging for the dashboard pipeline.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name
        log_dir: Optional log directory

    Returns:
        Configured logger instance
    """
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    if log_file or log_dir:
        if not log_file:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_file = f"dashboard_{timestamp}.log"

        log_path = Path(log_dir) / log_file if log_dir else Path(log_file)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"📄 Logging to file: {log_path}")

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger


def mask_token(token: Optional[str]) -> str:
    """Shorten a bearer token for log output."""
    if not token:
        return 'NO_TOKEN'
    if len(token) <= 10:
        return '***'
    return f"{token[:5]}...{token[-5:]}"
