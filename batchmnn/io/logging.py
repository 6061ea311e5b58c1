"""Logging utilities for BatchMNN.

Provides per-run file logs and structured run records (JSON lines, YAML).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert a timestamp before the suffix of a log file name.

    Example: smooth.log -> smooth_20260118_093015.log

    Parameters
    ----------
    log_path : PathLike
        Base log file path.

    Returns
    -------
    Path
        Path with the timestamp appended to the stem.
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_path.parent / f"{log_path.stem}_{timestamp}{log_path.suffix or '.log'}"


def get_logger(
    name: str,
    log_path: PathLike,
    level: int = logging.INFO,
    timestamped: bool = True,
) -> Tuple[logging.Logger, Path]:
    """Attach a file handler to the named logger.

    Existing handlers on the logger are replaced so that repeated runs in one
    process do not write duplicate lines.

    Parameters
    ----------
    name : str
        Logger name, e.g. ``"batchmnn"`` to capture all kernel messages.
    log_path : PathLike
        Base path for the log file.
    level : int
        Logging level (default: INFO).
    timestamped : bool
        Keep earlier logs by adding a timestamp to the file name. If False,
        an existing file at ``log_path`` is replaced.

    Returns
    -------
    Tuple[logging.Logger, Path]
        The logger and the path actually written to.
    """
    log_path = Path(log_path)
    if timestamped:
        actual_log_path = get_timestamped_log_path(log_path)
    else:
        actual_log_path = log_path
        actual_log_path.unlink(missing_ok=True)
    actual_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()
    handler = logging.FileHandler(actual_log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger, actual_log_path


def _to_builtin(value: Any) -> Any:
    """Convert numpy scalars and paths so records serialize cleanly."""
    if isinstance(value, dict):
        return {str(k): _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    return value


def log_json(log_path: PathLike, record: Dict[str, Any]) -> None:
    """Append one JSON line to log_path.

    Parameters
    ----------
    log_path : PathLike
        Path to the JSON-lines file.
    record : dict
        Record to serialize.
    """
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(_to_builtin(record), default=str))
        handle.write("\n")


def log_yaml(
    log_path: Optional[PathLike],
    record: Dict[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Append a YAML document to log_path, or emit it through a logger.

    Parameters
    ----------
    log_path : PathLike, optional
        Path to the YAML log file. Ignored when ``logger`` is given.
    record : dict
        Record to serialize.
    logger : logging.Logger, optional
        Logger to write the document to instead of a file.
    """
    message = yaml.safe_dump(_to_builtin(record), sort_keys=False).rstrip("\n") + "\n---"
    if logger is not None:
        logger.info("%s", message)
        return
    if log_path is None:
        raise ValueError("log_yaml needs either log_path or logger")

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(message)
        handle.write("\n")


def run_record(command: str, params: Dict[str, Any], summary: Dict[str, Any]) -> Dict[str, Any]:
    """Build the record written for one CLI run."""
    return {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "command": command,
        "params": params,
        "summary": summary,
    }
