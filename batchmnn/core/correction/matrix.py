"""Column and row access over dense, sparse and tabular matrices.

The kernels only need random column reads, random row reads and iteration
over blocks of consecutive columns. Wrapping the input in a MatrixAccessor
lets numpy arrays, scipy sparse matrices and pandas DataFrames share the same
code path; sparse inputs are densified one block at a time.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import sparse

MatrixLike = Union[np.ndarray, sparse.spmatrix, pd.DataFrame, "MatrixAccessor"]


class MatrixAccessor:
    """Read-only view over a 2-D numeric matrix.

    Parameters
    ----------
    matrix : MatrixLike
        Dense ndarray, scipy sparse matrix/array, or DataFrame. Other
        array-likes are converted with ``np.asarray``.
    chunk_size : int, optional
        Number of columns per block yielded by ``iter_col_blocks``. If None,
        dense inputs are yielded as a single block and sparse inputs in
        blocks of 1024 columns.
    """

    DEFAULT_SPARSE_CHUNK = 1024

    def __init__(self, matrix: MatrixLike, chunk_size: Optional[int] = None):
        if isinstance(matrix, MatrixAccessor):
            self._matrix = matrix._matrix
            self._is_sparse = matrix._is_sparse
        elif sparse.issparse(matrix):
            # CSC gives cheap column slices
            self._matrix = sparse.csc_matrix(matrix, dtype=np.float64)
            self._is_sparse = True
        elif isinstance(matrix, pd.DataFrame):
            self._matrix = matrix.to_numpy(dtype=np.float64)
            self._is_sparse = False
        else:
            self._matrix = np.asarray(matrix, dtype=np.float64)
            self._is_sparse = False

        if self._matrix.ndim != 2:
            raise ValueError(f"Expected a 2-D matrix, got {self._matrix.ndim} dimension(s)")
        self.chunk_size = chunk_size

    @property
    def shape(self) -> Tuple[int, int]:
        return tuple(int(s) for s in self._matrix.shape)

    @property
    def n_rows(self) -> int:
        return self.shape[0]

    @property
    def n_cols(self) -> int:
        return self.shape[1]

    @property
    def is_sparse(self) -> bool:
        return self._is_sparse

    @property
    def block_width(self) -> int:
        """Widest block ``iter_col_blocks`` can yield."""
        n_cols = self.n_cols
        step = self.chunk_size
        if step is None:
            step = self.DEFAULT_SPARSE_CHUNK if self._is_sparse else n_cols
        return min(step, n_cols)

    def get_col(self, j: int) -> np.ndarray:
        """Return column ``j`` as a new dense 1-D float64 array."""
        if self._is_sparse:
            return self._matrix[:, j].toarray().ravel()
        return np.array(self._matrix[:, j], dtype=np.float64)

    def get_row(self, i: int) -> np.ndarray:
        """Return row ``i`` as a new dense 1-D float64 array."""
        if self._is_sparse:
            return self._matrix[[i], :].toarray().ravel()
        return np.array(self._matrix[i, :], dtype=np.float64)

    def get_cols(self, indices: Sequence[int]) -> np.ndarray:
        """Return the selected columns as a dense (n_rows, len(indices)) array."""
        indices = np.asarray(indices, dtype=np.intp)
        if self._is_sparse:
            return self._matrix[:, indices].toarray()
        return np.array(self._matrix[:, indices], dtype=np.float64)

    def iter_col_blocks(self) -> Iterator[Tuple[int, np.ndarray]]:
        """Yield ``(start, block)`` pairs covering all columns in order.

        ``block`` is a dense (n_rows, k) array holding columns
        ``start:start + k``. Dense blocks are views and must not be modified.
        """
        n_cols = self.n_cols
        step = self.chunk_size
        if step is None:
            step = self.DEFAULT_SPARSE_CHUNK if self._is_sparse else max(n_cols, 1)

        for start in range(0, n_cols, step):
            stop = min(start + step, n_cols)
            if self._is_sparse:
                yield start, self._matrix[:, start:stop].toarray()
            else:
                yield start, self._matrix[:, start:stop]

    def to_dense(self) -> np.ndarray:
        """Return the full matrix as a dense float64 array (copy for sparse)."""
        if self._is_sparse:
            return self._matrix.toarray()
        return self._matrix


def as_accessor(matrix: MatrixLike, chunk_size: Optional[int] = None) -> MatrixAccessor:
    """Wrap ``matrix`` in a MatrixAccessor, reusing an existing one."""
    if isinstance(matrix, MatrixAccessor):
        if chunk_size is None or chunk_size == matrix.chunk_size:
            return matrix
        return MatrixAccessor(matrix, chunk_size=chunk_size)
    return MatrixAccessor(matrix, chunk_size=chunk_size)


def split_indices(n_items: int, n_blocks: int) -> List[np.ndarray]:
    """Split ``range(n_items)`` into at most ``n_blocks`` contiguous, non-empty blocks."""
    n_blocks = max(1, min(n_blocks, n_items))
    return [block for block in np.array_split(np.arange(n_items), n_blocks) if block.size]
