"""Variance adjustment of correction vectors by weighted quantile matching.

For each cell of the batch being corrected, both batches are projected onto
the cell's correction direction. Cells close to the line through the cell
along that direction get a high Gaussian weight, so the projections form
two locally weighted distributions. The cell's cumulative probability in its
own batch is matched to the same cumulative probability in the reference
batch, and the gap between the two quantiles (in units of the original
direction's length) is the scaling factor for that cell's correction.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

from ...utils.stats import weighted_quantile_index
from .errors import check_chunk_size, check_dimensions, check_n_jobs, check_sigma
from .geometry import sq_distance_to_line
from .matrix import MatrixAccessor, MatrixLike, as_accessor, split_indices

logger = logging.getLogger(__name__)


def _project_and_weight(
    accessor: MatrixAccessor,
    curcell: np.ndarray,
    grad: np.ndarray,
    s2: float,
    working: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Projection onto ``grad`` and kernel weight of every column."""
    n_cells = accessor.n_cols
    projections = np.empty(n_cells, dtype=np.float64)
    weights = np.empty(n_cells, dtype=np.float64)

    for start, block in accessor.iter_col_blocks():
        stop = start + block.shape[1]
        projections[start:stop] = grad @ block
        dist = sq_distance_to_line(curcell, grad, block, working[:, :block.shape[1]])
        weights[start:stop] = np.exp(-dist / s2)

    return projections, weights


def _adjust_cells(
    ref: MatrixAccessor,
    target: MatrixAccessor,
    directions: MatrixAccessor,
    cells: Sequence[int],
    s2: float,
) -> np.ndarray:
    """Scaling factors for a subset of target cells, in the order given."""
    n_genes = target.n_rows
    widest = max(ref.block_width, target.block_width)
    working = np.empty((n_genes, widest), dtype=np.float64)
    output = np.empty(len(cells), dtype=np.float64)

    for out_pos, cell in enumerate(cells):
        with np.errstate(invalid="ignore", divide="ignore", under="ignore"):
            output[out_pos] = _adjust_one(ref, target, directions, int(cell), s2, working)

    return output


def _adjust_one(
    ref: MatrixAccessor,
    target: MatrixAccessor,
    directions: MatrixAccessor,
    cell: int,
    s2: float,
    working: np.ndarray,
) -> float:
    """Scaling factor for a single target cell."""
    curcell = target.get_col(cell)

    raw = directions.get_row(cell)
    l2norm = float(np.sqrt(np.dot(raw, raw)))
    if l2norm == 0:
        return np.nan
    grad = raw / l2norm

    curproj = float(np.dot(grad, curcell))

    # Cumulative probability of this cell within its own batch
    sameproj, sameprob = _project_and_weight(target, curcell, grad, s2, working)
    sameprob[cell] = 1.0
    below = sameproj <= curproj
    below[cell] = True
    prob2 = sameprob[below].sum() / sameprob.sum()

    # Matching quantile in the reference batch
    if ref.n_cols == 0:
        return np.nan
    refproj, refprob = _project_and_weight(ref, curcell, grad, s2, working)
    order = np.lexsort((refprob, refproj))
    chosen = weighted_quantile_index(refprob[order], prob2 * refprob.sum())
    ref_quan = refproj[order[chosen]]

    return float((ref_quan - curproj) / l2norm)


def adjust_shift_variance(
    data1: MatrixLike,
    data2: MatrixLike,
    vect: MatrixLike,
    sigma: float,
    *,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Per-cell scaling of correction vectors that matches batch quantiles.

    Parameters
    ----------
    data1 : MatrixLike
        (n_genes, n_ref_cells) reference batch
    data2 : MatrixLike
        (n_genes, n_cells) batch being corrected
    vect : MatrixLike
        (n_cells, n_genes) correction direction for each cell of ``data2``.
        Rows are normalized internally; the input is not modified.
    sigma : float
        Positive kernel bandwidth; weights are ``exp(-d2 / sigma**2)`` with
        ``d2`` the squared distance to the cell's direction line
    n_jobs : int
        Worker threads over blocks of target cells (-1 for all cores)
    chunk_size : int, optional
        Columns of ``data1``/``data2`` densified at a time

    Returns
    -------
    np.ndarray
        (n_cells,) scaling factors ordered as the columns of ``data2``. NaN
        for cells with a zero direction vector, and for every cell when
        ``data1`` has no cells.

    Raises
    ------
    DimensionMismatch
        If gene or cell counts disagree between the three matrices
    InvalidParameter
        If sigma, n_jobs or chunk_size is invalid
    """
    sigma = check_sigma(sigma)
    n_jobs = check_n_jobs(n_jobs)
    chunk_size = check_chunk_size(chunk_size)

    ref = as_accessor(data1, chunk_size=chunk_size)
    target = as_accessor(data2, chunk_size=chunk_size)
    directions = as_accessor(vect)

    check_dimensions("number of genes in 'data1'", ref.n_rows, "number of genes in 'data2'", target.n_rows)
    check_dimensions("number of genes in 'data1'", ref.n_rows, "number of columns in 'vect'", directions.n_cols)
    check_dimensions("number of cells in 'data2'", target.n_cols, "number of rows in 'vect'", directions.n_rows)

    n_cells = target.n_cols
    s2 = sigma * sigma
    logger.info(
        "Adjusting variance for %d cells against %d reference cells (sigma=%g, n_jobs=%d)",
        n_cells, ref.n_cols, sigma, n_jobs,
    )
    if ref.n_cols == 0 and n_cells:
        logger.warning("Reference batch is empty; all scaling factors are undefined (NaN)")

    if n_jobs == 1 or n_cells <= 1:
        output = _adjust_cells(ref, target, directions, range(n_cells), s2)
    else:
        blocks = split_indices(n_cells, effective_n_jobs(n_jobs))
        parts = Parallel(n_jobs=n_jobs, prefer="threads", verbose=0)(
            delayed(_adjust_cells)(ref, target, directions, block, s2) for block in blocks
        )
        output = np.concatenate(parts) if parts else np.empty(0, dtype=np.float64)

    n_undefined = int(np.count_nonzero(np.isnan(output)))
    if n_undefined:
        logger.debug("%d of %d scaling factors are undefined (NaN)", n_undefined, n_cells)
    return output

