"""Numerical helpers shared by the correction kernels.

Provides log-space accumulation of probabilities and weighted quantile
lookup over sorted samples.
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np

ArrayLike = Union[Iterable[float], np.ndarray]


def logspace_add(a: Union[float, np.ndarray], b: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Return ``log(exp(a) + exp(b))`` without leaving log space.

    Uses ``max(a, b) + log1p(exp(-|a - b|))``, which cannot overflow and only
    underflows in the correction term. Works element-wise on arrays.

    Parameters
    ----------
    a, b : float or np.ndarray
        Log-probabilities.

    Returns
    -------
    float or np.ndarray
        Log of the summed probabilities.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    larger = np.maximum(a, b)
    with np.errstate(invalid="ignore"):
        diff = np.abs(a - b)
    # -inf on both sides gives nan in diff; the sum is still -inf
    diff = np.where(np.isnan(diff) & np.isneginf(larger), np.inf, diff)
    out = larger + np.log1p(np.exp(-diff))
    if out.ndim == 0:
        return float(out)
    return out


def logspace_sum(values: ArrayLike) -> float:
    """Sum probabilities given as logs, reducing pairwise.

    Adjacent pairs are combined with ``logspace_add`` until one value
    remains, so the result does not depend on a left-to-right fold order.

    Parameters
    ----------
    values : ArrayLike
        Log-probabilities.

    Returns
    -------
    float
        Log of the total probability; ``-inf`` for empty input.
    """
    level = np.asarray(list(values) if not isinstance(values, np.ndarray) else values, dtype=float).ravel()
    if level.size == 0:
        return float("-inf")

    while level.size > 1:
        paired = level.size // 2 * 2
        combined = logspace_add(level[0:paired:2], level[1:paired:2])
        if level.size % 2:
            combined = np.append(combined, level[-1])
        level = np.atleast_1d(combined)
    return float(level[0])


def weighted_quantile_index(sorted_weights: np.ndarray, target: float) -> int:
    """Locate the first position where cumulative weight reaches ``target``.

    Parameters
    ----------
    sorted_weights : np.ndarray
        Non-negative weights, already in ascending order of the sample
        values they belong to.
    target : float
        Cumulative weight to reach.

    Returns
    -------
    int
        Index of the first element whose running weight total is
        ``>= target``. If the total never gets there (rounding, or a NaN
        target), the last index. ``-1`` for empty input.
    """
    n = len(sorted_weights)
    if n == 0:
        return -1
    cumulative = np.cumsum(sorted_weights)
    reached = cumulative >= target
    if not reached.any():
        return n - 1
    return int(np.argmax(reached))
