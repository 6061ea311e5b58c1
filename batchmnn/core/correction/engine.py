"""Two-batch MNN correction built from the smoothing and variance kernels.

MNN pairs are supplied by the caller; this module turns them into per-pair
correction vectors, smooths those over the batch being corrected, optionally
rescales them with the variance adjustment, and applies them.

All matrices are genes (rows) x cells (columns).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from .aggregation import average_correction_vectors
from .config import CorrectionConfig
from .errors import InvalidParameter, check_dimensions
from .matrix import MatrixLike, as_accessor
from .smoothing import smooth_with_table
from .variance import adjust_shift_variance

logger = logging.getLogger(__name__)


def cosine_normalize(data: MatrixLike) -> np.ndarray:
    """Scale every cell (column) to unit L2 norm.

    Columns with zero norm are returned unchanged.

    Parameters
    ----------
    data : MatrixLike
        (n_genes, n_cells) expression matrix

    Returns
    -------
    np.ndarray
        New dense (n_genes, n_cells) array
    """
    dense = np.array(as_accessor(data).to_dense(), dtype=np.float64)
    norms = np.sqrt(np.einsum("ij,ij->j", dense, dense))
    norms[norms == 0] = 1.0
    return dense / norms[None, :]


def _pair_indices(values: Sequence[int], name: str, n_cells: int, index_base: int) -> np.ndarray:
    idx = np.asarray(values).ravel()
    if idx.size and not np.issubdtype(idx.dtype, np.integer):
        raise InvalidParameter(f"'{name}' should contain integer cell indices")
    idx = idx.astype(np.int64) - index_base
    if idx.size and (idx.min() < 0 or idx.max() >= n_cells):
        raise InvalidParameter(
            f"'{name}' contains cell indices outside 0..{n_cells - 1} (index_base={index_base})"
        )
    return idx


def compute_correction_vectors(
    ref: MatrixLike,
    target: MatrixLike,
    mnn_ref: Sequence[int],
    mnn_target: Sequence[int],
    index_base: int = 0,
) -> np.ndarray:
    """Per-pair difference vectors from the target cell to its reference mate.

    Parameters
    ----------
    ref : MatrixLike
        (n_genes, n_ref_cells) reference batch
    target : MatrixLike
        (n_genes, n_cells) batch being corrected
    mnn_ref : Sequence[int]
        Reference cell of each MNN pair
    mnn_target : Sequence[int]
        Target cell of each MNN pair
    index_base : int
        0 or 1, numbering used by both pair arrays

    Returns
    -------
    np.ndarray
        (n_pairs, n_genes) array; row i is ``ref[:, mnn_ref[i]] - target[:, mnn_target[i]]``
    """
    ref_acc = as_accessor(ref)
    target_acc = as_accessor(target)
    check_dimensions("length of 'mnn_ref'", len(mnn_ref), "length of 'mnn_target'", len(mnn_target))
    check_dimensions("number of genes in 'ref'", ref_acc.n_rows, "number of genes in 'target'", target_acc.n_rows)

    ref_idx = _pair_indices(mnn_ref, "mnn_ref", ref_acc.n_cols, index_base)
    target_idx = _pair_indices(mnn_target, "mnn_target", target_acc.n_cols, index_base)
    return (ref_acc.get_cols(ref_idx) - target_acc.get_cols(target_idx)).T


@dataclass
class CorrectionResult:
    """Result from a two-batch correction.

    Attributes
    ----------
    corrected : np.ndarray
        (n_genes, n_cells) corrected target batch
    correction : np.ndarray
        (n_genes, n_cells) correction added to each target cell
    scales : Optional[np.ndarray]
        (n_cells,) variance-adjustment factors after clipping, or None when
        variance adjustment was disabled
    n_pairs : int
        Number of MNN pairs used
    n_anchors : int
        Number of distinct target cells involved in pairs
    """

    corrected: np.ndarray
    correction: np.ndarray
    scales: Optional[np.ndarray]
    n_pairs: int
    n_anchors: int

    @property
    def n_undefined_cells(self) -> int:
        """Cells whose correction contains NaN."""
        if self.correction.size == 0:
            return 0
        return int(np.count_nonzero(np.isnan(self.correction).any(axis=0)))

    def summary(self) -> Dict[str, Any]:
        """Plain dictionary suitable for JSON/YAML run logs."""
        return {
            "n_genes": int(self.corrected.shape[0]),
            "n_cells": int(self.corrected.shape[1]),
            "n_pairs": self.n_pairs,
            "n_anchors": self.n_anchors,
            "n_undefined_cells": self.n_undefined_cells,
            "variance_adjusted": self.scales is not None,
        }


class MNNCorrector:
    """Corrects one batch towards a reference batch using given MNN pairs.

    Parameters
    ----------
    config : CorrectionConfig, optional
        Correction configuration (validated on construction)

    Example
    -------
    >>> from batchmnn.core.correction import MNNCorrector, CorrectionConfig
    >>> corrector = MNNCorrector(CorrectionConfig())
    >>> result = corrector.correct(ref, target, mnn_ref, mnn_target)
    >>> result.corrected.shape == target.shape
    True
    """

    def __init__(self, config: Optional[CorrectionConfig] = None):
        self.config = (config or CorrectionConfig()).validate()

    def correct(
        self,
        ref: MatrixLike,
        target: MatrixLike,
        mnn_ref: Sequence[int],
        mnn_target: Sequence[int],
    ) -> CorrectionResult:
        """Correct ``target`` towards ``ref``.

        Parameters
        ----------
        ref : MatrixLike
            (n_genes, n_ref_cells) reference batch
        target : MatrixLike
            (n_genes, n_cells) batch to correct
        mnn_ref : Sequence[int]
            Reference cell of each MNN pair
        mnn_target : Sequence[int]
            Target cell of each MNN pair

        Returns
        -------
        CorrectionResult
            Corrected batch, correction vectors and scaling factors. With
            ``cos_norm`` enabled the result is in cosine-normalized space.
        """
        smoothing = self.config.smoothing
        variance = self.config.variance

        if self.config.cos_norm:
            logger.info("Performing cosine normalization...")
            ref = cosine_normalize(ref)
            target = cosine_normalize(target)

        ref_acc = as_accessor(ref)
        target_acc = as_accessor(target)

        logger.info("Computing correction vectors for %d MNN pairs...", len(mnn_ref))
        vect = compute_correction_vectors(
            ref_acc, target_acc, mnn_ref, mnn_target, index_base=smoothing.index_base
        )
        table = average_correction_vectors(vect, mnn_target, index_base=smoothing.index_base)
        correction = smooth_with_table(
            table,
            target_acc,
            smoothing.sigma,
            n_jobs=smoothing.n_jobs,
            chunk_size=smoothing.chunk_size,
        )

        scales = None
        if self.config.var_adj:
            logger.info("Adjusting variance...")
            scales = adjust_shift_variance(
                ref_acc,
                target_acc,
                correction.T,
                variance.sigma,
                n_jobs=variance.n_jobs,
                chunk_size=variance.chunk_size,
            )
            # np.maximum keeps NaN, so undefined cells stay undefined
            scales = np.maximum(scales, float(variance.min_scale))
            correction = correction * scales[None, :]

        logger.info("Applying correction...")
        corrected = target_acc.to_dense() + correction

        result = CorrectionResult(
            corrected=corrected,
            correction=correction,
            scales=scales,
            n_pairs=int(vect.shape[0]),
            n_anchors=len(table),
        )
        if result.n_undefined_cells:
            logger.warning(
                "%d of %d cells have undefined corrections (NaN)",
                result.n_undefined_cells, corrected.shape[1],
            )
        return result
