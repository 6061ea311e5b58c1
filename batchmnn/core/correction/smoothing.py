"""Gaussian kernel smoothing of MNN correction vectors.

Every cell in the batch receives a weighted blend of the anchor-cell mean
correction vectors. An anchor's weight for a cell is a Gaussian kernel on
their squared distance in expression space, divided by the anchor's local
density (its total kernel mass over all anchors) so that crowded anchor
regions do not dominate the blend.

All kernel arithmetic stays in log space until the final weights are formed.
The Gaussian normalizing constant is dropped because it cancels when each
cell's blend is divided by its total weight.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

from ...utils.stats import logspace_sum
from .aggregation import AverageVectorTable, average_correction_vectors
from .errors import InvalidParameter, check_chunk_size, check_n_jobs, check_sigma
from .matrix import MatrixAccessor, MatrixLike, as_accessor, split_indices

logger = logging.getLogger(__name__)


def squared_distances_to_cell(accessor: MatrixAccessor, profile: np.ndarray) -> np.ndarray:
    """Squared Euclidean distance from ``profile`` to every column.

    Parameters
    ----------
    accessor : MatrixAccessor
        (n_genes, n_cells) expression matrix
    profile : np.ndarray
        (n_genes,) expression profile of the reference cell

    Returns
    -------
    np.ndarray
        (n_cells,) squared distances
    """
    distances2 = np.empty(accessor.n_cols, dtype=np.float64)
    for start, block in accessor.iter_col_blocks():
        diff = block - profile[:, None]
        distances2[start:start + block.shape[1]] = np.einsum("ij,ij->j", diff, diff)
    return distances2


def _accumulate_anchors(
    accessor: MatrixAccessor,
    table: AverageVectorTable,
    positions: Sequence[int],
    s2: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Weighted sums for a subset of anchors.

    Returns this subset's own ``(output, total_weight)`` accumulators so that
    callers running subsets concurrently can add them up afterwards.
    """
    n_cells = accessor.n_cols
    output = np.zeros((table.n_genes, n_cells), dtype=np.float64)
    totalprob = np.zeros(n_cells, dtype=np.float64)

    for pos in positions:
        mnn = int(table.anchors[pos])
        logprob = squared_distances_to_cell(accessor, accessor.get_col(mnn))
        logprob /= -s2

        # Log of the anchor's kernel mass over all anchors, itself included
        density = logspace_sum(logprob[table.anchors])

        mult = np.exp(logprob - density)
        totalprob += mult
        output += np.outer(table.averages[pos], mult)

    return output, totalprob


def smooth_with_table(
    table: AverageVectorTable,
    data: MatrixLike,
    sigma: float,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Smooth pre-averaged anchor vectors over all cells in ``data``.

    Parameters
    ----------
    table : AverageVectorTable
        Anchor mean vectors from ``average_correction_vectors``
    data : MatrixLike
        (n_dist_genes, n_cells) expression matrix used only for distances
    sigma : float
        Kernel bandwidth; log-weights are ``-d2 / sigma**2``
    n_jobs : int
        Worker threads; anchors are split into blocks and each block keeps
        private accumulators that are summed at the end
    chunk_size : int, optional
        Columns of ``data`` densified at a time

    Returns
    -------
    np.ndarray
        (n_genes, n_cells) smoothed correction vectors. All-NaN when the
        table is empty; NaN columns for cells that receive zero total weight.
    """
    sigma = check_sigma(sigma)
    n_jobs = check_n_jobs(n_jobs)
    accessor = as_accessor(data, chunk_size=check_chunk_size(chunk_size))
    n_cells = accessor.n_cols

    if len(table) and table.anchors[-1] >= n_cells:
        raise InvalidParameter(
            f"anchor cell index {int(table.anchors[-1])} is out of range "
            f"for 'data' with {n_cells} cells"
        )

    s2 = sigma * sigma
    n_anchors = len(table)
    logger.info(
        "Smoothing %d anchor vectors over %d cells (sigma=%g, n_jobs=%d)",
        n_anchors, n_cells, sigma, n_jobs,
    )

    if n_jobs == 1 or n_anchors <= 1:
        output, totalprob = _accumulate_anchors(accessor, table, range(n_anchors), s2)
    else:
        effective_jobs = effective_n_jobs(n_jobs)
        blocks = split_indices(n_anchors, effective_jobs)
        partials = Parallel(n_jobs=n_jobs, prefer="threads", verbose=0)(
            delayed(_accumulate_anchors)(accessor, table, block, s2) for block in blocks
        )
        output = np.zeros((table.n_genes, n_cells), dtype=np.float64)
        totalprob = np.zeros(n_cells, dtype=np.float64)
        for part_output, part_total in partials:
            output += part_output
            totalprob += part_total

    if n_anchors == 0:
        logger.warning("No MNN anchor cells supplied; smoothed corrections are undefined (NaN)")

    with np.errstate(invalid="ignore", divide="ignore"):
        output /= totalprob[None, :]

    n_undefined = int(np.count_nonzero(totalprob == 0))
    if n_anchors and n_undefined:
        logger.warning(
            "%d of %d cells received zero kernel weight from every anchor (NaN output); "
            "consider a larger sigma",
            n_undefined, n_cells,
        )
    return output


def smooth_gaussian_kernel(
    vect: MatrixLike,
    index: Sequence[int],
    data: MatrixLike,
    sigma: float,
    *,
    index_base: int = 0,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Smooth per-pair correction vectors across every cell of a batch.

    Parameters
    ----------
    vect : MatrixLike
        (n_pairs, n_genes) correction vector of each MNN pair
    index : Sequence[int]
        Anchor cell (column of ``data``) of each pair
    data : MatrixLike
        (n_dist_genes, n_cells) expression matrix; its gene count may differ
        from that of ``vect``
    sigma : float
        Positive kernel bandwidth
    index_base : int
        0 or 1, the numbering used by ``index``
    n_jobs : int
        Worker threads (-1 for all cores)
    chunk_size : int, optional
        Columns of ``data`` densified at a time

    Returns
    -------
    np.ndarray
        (n_genes, n_cells) smoothed corrections, columns ordered as ``data``

    Raises
    ------
    DimensionMismatch
        If ``vect`` rows and ``index`` length differ (checked before ``data``
        is read)
    InvalidParameter
        If sigma, index_base, n_jobs or chunk_size is invalid, or an anchor is
        not a column of ``data``
    """
    check_sigma(sigma)
    table = average_correction_vectors(vect, index, index_base=index_base)
    return smooth_with_table(table, data, sigma, n_jobs=n_jobs, chunk_size=chunk_size)
