"""I/O utilities for BatchMNN.

Provides logging, run records, and matrix/index file I/O.
"""

from .logging import get_logger, get_timestamped_log_path, log_json, log_yaml, run_record
from .matrix import (
    ensure_output_dir,
    load_matrix,
    load_index,
    load_pairs,
    write_matrix,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    "run_record",
    # Matrix I/O
    "ensure_output_dir",
    "load_matrix",
    "load_index",
    "load_pairs",
    "write_matrix",
]
