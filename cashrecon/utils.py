"""
Utility functions for the reconciliation engine.

This module contains helpers that are used across the package but are not
directly related to parsing or matching: logging setup, environment-driven
limits, output directories and money rounding.
"""

import math
import os
import pathlib
import logging

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 50000
MIN_MAX_ROWS = 1000
WORKING_DIRECTORIES = ('output',)


def setup_logging(debug=False, log_level='info'):
    """Configure logging for the application."""
    # Determine log level
    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Get log file path from environment or use default
    log_file = os.getenv('LOG_FILE', 'debug.log')

    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    return log_file


def get_max_rows():
    """Row cap applied to each parsed input.

    Reads ``FINANCE_JOB_MAX_ROWS``; unset or unparseable values fall back to
    50,000 and anything below 1,000 is raised to 1,000.
    """
    raw = os.getenv('FINANCE_JOB_MAX_ROWS', '')
    try:
        max_rows = int(raw.strip())
    except ValueError:
        max_rows = 0
    if max_rows <= 0:
        max_rows = DEFAULT_MAX_ROWS
    return max(MIN_MAX_ROWS, max_rows)


def get_max_comparisons():
    """Optional candidate-comparison budget for the tolerance matching passes.

    Returns:
        int or None: Budget from ``FINANCE_MATCH_MAX_COMPARISONS``, or None when
        unset, non-numeric or not positive (no budget).
    """
    raw = os.getenv('FINANCE_MATCH_MAX_COMPARISONS', '')
    try:
        budget = int(raw.strip())
    except ValueError:
        return None
    return budget if budget > 0 else None


def ensure_directory(dir_type='output'):
    """Resolve a working directory under ``DATA_DIR`` (current directory when unset).

    The command line writes here when no explicit output directory is given.

    Args:
        dir_type (str): Only 'output' (exports and reports)

    Returns:
        pathlib.Path: The directory, created if missing

    Raises:
        ValueError: If dir_type is not a known working directory
    """
    if dir_type not in WORKING_DIRECTORIES:
        raise ValueError(f"Invalid directory type: {dir_type}. Expected one of: {list(WORKING_DIRECTORIES)}")

    dir_path = pathlib.Path(os.getenv('DATA_DIR') or os.getcwd()) / dir_type
    if not dir_path.exists():
        logger.info(f"Creating {dir_type} directory {dir_path}")
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def create_output_directories(output_dir):
    """
    Create the output directory for reconciliation artifacts.

    Args:
        output_dir (str or pathlib.Path): Base directory for output files

    Returns:
        pathlib.Path: The created directory
    """
    logger.info(f"Creating output directory {output_dir}")

    if isinstance(output_dir, str):
        output_dir = pathlib.Path(output_dir)

    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def round_money(value):
    """Round half up to cents (2 decimal places)."""
    return math.floor(float(value or 0) * 100 + 0.5) / 100


def round_percent(value):
    """Round half up to one decimal place."""
    return math.floor(float(value or 0) * 10 + 0.5) / 10


def to_amount_cents(value):
    """Convert a money value to integer minor units (cents)."""
    return int(math.floor(float(value or 0) * 100 + 0.5))
