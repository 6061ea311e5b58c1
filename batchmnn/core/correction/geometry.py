"""Distance from points to a line in expression space."""

from __future__ import annotations

from typing import Optional, Union

import numpy as np


def sq_distance_to_line(
    ref: np.ndarray,
    grad: np.ndarray,
    point: np.ndarray,
    working: Optional[np.ndarray] = None,
) -> Union[float, np.ndarray]:
    """Squared distance from ``point`` to the line through ``ref`` along ``grad``.

    Parameters
    ----------
    ref : np.ndarray
        (n_genes,) point on the line
    grad : np.ndarray
        (n_genes,) unit-length direction of the line
    point : np.ndarray
        (n_genes,) query point, or (n_genes, k) block with one query point
        per column
    working : np.ndarray, optional
        Scratch buffer with the shape of ``point``. Reusing one buffer across
        calls avoids an allocation per query.

    Returns
    -------
    float or np.ndarray
        Squared distance, or (k,) squared distances for a block of points.
    """
    point = np.asarray(point, dtype=np.float64)
    if working is None or working.shape != point.shape:
        working = np.empty_like(point)

    if point.ndim == 1:
        np.subtract(ref, point, out=working)
        scale = np.dot(working, grad)
        working -= scale * grad
        return float(np.dot(working, working))

    # Column-wise version of the steps above
    np.subtract(ref[:, None], point, out=working)
    scale = grad @ working
    working -= np.outer(grad, scale)
    return np.einsum("ij,ij->j", working, working)
