from __future__ import annotations

"""
Logging Configuration Models.

Defines the immutable configuration consumed by configure_logging and
the mapping from textual severity names to logging constants.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging subsystem settings.

    Attributes:
        level: Minimum severity level to capture.
        console: Emit to stderr.
        log_file: Optional path of a rotating log file.
        max_bytes: Size threshold for rotation.
        backup_count: Rotated segments to keep.
        console_fmt: Format of stderr entries.
        file_fmt: Format of file entries.
        datefmt: Timestamp format.
    """
    level: str = "INFO"
    console: bool = True
    log_file: Optional[str] = None

    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5

    console_fmt: str = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
    file_fmt: str = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
