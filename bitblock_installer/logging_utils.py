# Path and File Name : /home/bitblock/rebuild/bitblock_installer/logging_utils.py
# Author: nXxBku0CKFAJCBN3X1g3bQk7OxYQylg8CMw1iGsq7gU
# Details of functionality of this file: Configures timestamped installer logging to stderr and an optional log file

"""
Installer logging setup.
Every stage logs a timestamped line on entry and on failure.
"""

import sys
import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure logging to stderr and, when requested, to a file."""
    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger('bitblock_installer')


def flush_logging() -> None:
    """Flush all root handlers (required before the process image is replaced)."""
    for handler in logging.getLogger().handlers:
        handler.flush()
