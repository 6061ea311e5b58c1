"""Averaging of MNN pair correction vectors per anchor cell.

Each MNN pair carries one correction vector and points at one anchor cell in
the batch being corrected. Several pairs can share an anchor; the smoother
works with one mean vector per distinct anchor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Sequence

import numpy as np

from .errors import InvalidParameter, check_dimensions
from .matrix import MatrixLike, as_accessor

logger = logging.getLogger(__name__)


@dataclass
class AverageVectorTable:
    """Mean correction vector for every anchor cell.

    Attributes
    ----------
    anchors : np.ndarray
        Distinct 0-based anchor cell indices, ascending
    averages : np.ndarray
        (n_anchors, n_genes) mean correction vectors, row-aligned with anchors
    counts : np.ndarray
        Number of pairs averaged into each row
    """

    anchors: np.ndarray
    averages: np.ndarray
    counts: np.ndarray

    def __len__(self) -> int:
        return len(self.anchors)

    def __contains__(self, anchor: object) -> bool:
        if not isinstance(anchor, (int, np.integer)):
            return False
        pos = np.searchsorted(self.anchors, anchor)
        return bool(pos < len(self.anchors) and self.anchors[pos] == anchor)

    def __getitem__(self, anchor: int) -> np.ndarray:
        if anchor not in self:
            raise KeyError(anchor)
        return self.averages[np.searchsorted(self.anchors, anchor)]

    def __iter__(self) -> Iterator[int]:
        return (int(a) for a in self.anchors)

    @property
    def n_genes(self) -> int:
        return int(self.averages.shape[1])

    def as_dict(self) -> Dict[int, np.ndarray]:
        """Return a plain ``{anchor: mean_vector}`` mapping."""
        return {int(a): self.averages[i] for i, a in enumerate(self.anchors)}


def average_correction_vectors(
    vect: MatrixLike,
    index: Sequence[int],
    index_base: int = 0,
) -> AverageVectorTable:
    """Average correction vectors over pairs sharing an anchor cell.

    Parameters
    ----------
    vect : MatrixLike
        (n_pairs, n_genes) correction vectors, one row per MNN pair
    index : Sequence[int]
        Anchor cell of each pair, length n_pairs
    index_base : int
        0 if ``index`` is 0-based, 1 if it is 1-based

    Returns
    -------
    AverageVectorTable
        One mean vector per distinct anchor; anchors that never occur in
        ``index`` are absent.

    Raises
    ------
    DimensionMismatch
        If the row count of ``vect`` differs from the length of ``index``
    InvalidParameter
        If ``index_base`` is not 0 or 1, ``index`` is not integral, or an
        anchor is negative after removing the base
    """
    if index_base not in (0, 1):
        raise InvalidParameter(f"'index_base' should be 0 or 1, got {index_base!r}")

    idx = np.asarray(index)
    if idx.ndim != 1:
        idx = idx.ravel()
    accessor = as_accessor(vect)
    check_dimensions("number of rows in 'vect'", accessor.n_rows, "length of 'index'", idx.size)

    if idx.size and not np.issubdtype(idx.dtype, np.integer):
        if not np.all(np.isfinite(idx)) or not np.all(np.equal(np.mod(idx, 1), 0)):
            raise InvalidParameter("'index' should contain integer cell indices")
    idx = idx.astype(np.int64) - index_base
    if idx.size and idx.min() < 0:
        raise InvalidParameter(
            f"'index' contains negative cell index {int(idx.min()) + index_base} "
            f"for index_base={index_base}"
        )

    n_genes = accessor.n_cols
    anchors, inverse, counts = np.unique(idx, return_inverse=True, return_counts=True)

    # Running sum per anchor, then divide by the pair count
    sums = np.zeros((len(anchors), n_genes), dtype=np.float64)
    np.add.at(sums, inverse, accessor.to_dense())
    averages = sums / counts[:, None] if len(anchors) else sums

    logger.debug(
        "Averaged %d pair vectors into %d anchor cells (%d genes)",
        idx.size, len(anchors), n_genes,
    )
    return AverageVectorTable(anchors=anchors, averages=averages, counts=counts)
