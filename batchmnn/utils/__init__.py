"""Utility functions for BatchMNN.

Provides numerical helpers used across the correction kernels.
"""

from .stats import (
    logspace_add,
    logspace_sum,
    weighted_quantile_index,
)

__all__ = [
    "logspace_add",
    "logspace_sum",
    "weighted_quantile_index",
]
