"""Exceptions raised by the correction kernels.

Structural problems (shape disagreements, bad parameters) abort the whole
call before any numeric work. Degenerate geometry never raises; it shows up
as NaN in the affected output entries.
"""

from numbers import Real
from typing import Any, Optional

import numpy as np


class CorrectionError(Exception):
    """Base class for correction kernel errors."""

    pass


class DimensionMismatch(CorrectionError, ValueError):
    """Raised when paired inputs disagree in row or column counts."""

    def __init__(self, first: str, first_value: int, second: str, second_value: int):
        self.first = first
        self.first_value = first_value
        self.second = second
        self.second_value = second_value
        super().__init__(
            f"{first} ({first_value}) does not match {second} ({second_value})"
        )


class InvalidParameter(CorrectionError, ValueError):
    """Raised when a scalar parameter or index is outside its valid range."""

    pass


def check_dimensions(first: str, first_value: int, second: str, second_value: int) -> None:
    """Raise DimensionMismatch unless the two counts agree."""
    if int(first_value) != int(second_value):
        raise DimensionMismatch(first, int(first_value), second, int(second_value))


def check_sigma(sigma: Any, name: str = "sigma") -> float:
    """Validate a kernel bandwidth and return it as float.

    Parameters
    ----------
    sigma : Any
        Candidate bandwidth. Must be a real, finite, strictly positive scalar
        whose square is also finite and non-zero.
    name : str
        Parameter name used in the error message.

    Returns
    -------
    float
        The validated bandwidth.

    Raises
    ------
    InvalidParameter
        If sigma is not a positive finite scalar, or sigma**2 underflows or
        overflows.
    """
    if isinstance(sigma, np.ndarray):
        if sigma.size != 1:
            raise InvalidParameter(f"'{name}' should be a scalar, got shape {sigma.shape}")
        sigma = sigma.reshape(-1)[0]
    if isinstance(sigma, bool) or not isinstance(sigma, (Real, np.number)):
        raise InvalidParameter(f"'{name}' should be a numeric scalar, got {type(sigma).__name__}")
    value = float(sigma)
    if not np.isfinite(value) or value <= 0:
        raise InvalidParameter(f"'{name}' should be a positive finite number, got {value}")
    squared = value * value
    if squared == 0 or not np.isfinite(squared):
        raise InvalidParameter(
            f"'{name}' squared ({squared}) is not a usable kernel bandwidth, got {value}"
        )
    return value


def check_n_jobs(n_jobs: Any) -> int:
    """Validate a joblib worker count (positive, or -1 for all cores)."""
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, (int, np.integer)):
        raise InvalidParameter(f"'n_jobs' should be an integer, got {n_jobs!r}")
    if n_jobs == 0 or n_jobs < -1:
        raise InvalidParameter(f"'n_jobs' should be positive or -1, got {n_jobs}")
    return int(n_jobs)


def check_chunk_size(chunk_size: Any) -> Optional[int]:
    """Validate an optional column chunk size."""
    if chunk_size is None:
        return None
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, (int, np.integer)):
        raise InvalidParameter(f"'chunk_size' should be an integer, got {chunk_size!r}")
    if chunk_size < 1:
        raise InvalidParameter(f"'chunk_size' should be at least 1, got {chunk_size}")
    return int(chunk_size)
