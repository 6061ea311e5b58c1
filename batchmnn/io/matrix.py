"""Matrix I/O utilities for BatchMNN.

Reads and writes the plain matrices and index vectors consumed by the
correction kernels. Expression matrices are returned genes x cells; AnnData
files (cells x genes) are transposed on load.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import io as spio
from scipy import sparse

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MATRIX_SUFFIXES = (".npy", ".csv", ".tsv", ".mtx", ".h5ad")


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it.

    Parameters
    ----------
    path : PathLike
        Directory path to create.

    Returns
    -------
    Path
        The created/existing directory path.
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _existing(path: PathLike, what: str) -> Path:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"{what} not found: {file_path}")
    return file_path


def _separator(path: Path) -> str:
    return "\t" if path.suffix.lower() == ".tsv" else ","


def _read_table(path: Path) -> pd.DataFrame:
    """Read a delimited numeric table, using a text first column as row labels."""
    df = pd.read_csv(path, sep=_separator(path))
    if df.shape[1] > 1 and not pd.api.types.is_numeric_dtype(df.iloc[:, 0]):
        df = df.set_index(df.columns[0])
    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(f"Matrix {path} has non-numeric columns: {non_numeric[:5]}")
    return df


def load_matrix(
    path: PathLike,
    *,
    transpose: bool = False,
    layer: Optional[str] = None,
) -> Union[np.ndarray, sparse.spmatrix]:
    """Load a 2-D numeric matrix.

    Parameters
    ----------
    path : PathLike
        ``.npy``, ``.csv``/``.tsv`` (header row, optional text row labels),
        ``.mtx`` (Matrix Market, returned as CSR) or ``.h5ad``.
    transpose : bool
        Transpose after loading (applied after the AnnData orientation fix).
    layer : str, optional
        AnnData layer to read instead of ``X`` (``.h5ad`` only).

    Returns
    -------
    np.ndarray or scipy.sparse matrix
        The loaded matrix.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the suffix is unsupported, the requested AnnData layer is missing, or
        the content is not a 2-D numeric matrix.
    """
    file_path = _existing(path, "Matrix file")
    suffix = file_path.suffix.lower()

    if suffix == ".npy":
        matrix = np.load(file_path, allow_pickle=False)
    elif suffix in (".csv", ".tsv"):
        matrix = _read_table(file_path).to_numpy(dtype=np.float64)
    elif suffix == ".mtx":
        matrix = sparse.csr_matrix(spio.mmread(str(file_path)))
    elif suffix == ".h5ad":
        import anndata as ad

        adata = ad.read_h5ad(file_path)
        if layer is None:
            matrix = adata.X
        elif layer in adata.layers:
            matrix = adata.layers[layer]
        else:
            raise ValueError(
                f"Layer '{layer}' not found in {file_path}; "
                f"available layers: {list(adata.layers.keys())}"
            )
        # AnnData stores cells x genes
        matrix = matrix.T
    else:
        raise ValueError(
            f"Unsupported matrix format '{suffix}' for {file_path}; "
            f"expected one of {', '.join(MATRIX_SUFFIXES)}"
        )

    if matrix.ndim != 2:
        raise ValueError(f"Matrix {file_path} should be 2-D, got shape {matrix.shape}")
    if transpose:
        matrix = matrix.T

    logger.debug("Loaded matrix %s with shape %s", file_path, matrix.shape)
    return matrix


def load_index(path: PathLike) -> np.ndarray:
    """Load an integer vector (one value per line, optional header).

    Parameters
    ----------
    path : PathLike
        ``.npy`` file or single-column text/CSV file.

    Returns
    -------
    np.ndarray
        1-D int64 array.
    """
    file_path = _existing(path, "Index file")
    if file_path.suffix.lower() == ".npy":
        values = np.load(file_path, allow_pickle=False).ravel()
    else:
        df = pd.read_csv(file_path, header=None, sep=_separator(file_path))
        column = pd.to_numeric(df.iloc[:, 0], errors="coerce")
        if len(column) and pd.isna(column.iloc[0]):
            column = column.iloc[1:]
        if column.isna().any():
            raise ValueError(f"Index file {file_path} contains non-numeric entries")
        values = column.to_numpy()

    if values.size and not np.all(np.equal(np.mod(values, 1), 0)):
        raise ValueError(f"Index file {file_path} contains non-integer values")
    return values.astype(np.int64)


def load_pairs(
    path: PathLike,
    ref_col: str = "ref",
    target_col: str = "target",
) -> Tuple[np.ndarray, np.ndarray]:
    """Load MNN pairs from a CSV with reference and target cell columns.

    Parameters
    ----------
    path : PathLike
        CSV/TSV file with one row per pair.
    ref_col : str
        Column with reference cell indices.
    target_col : str
        Column with target cell indices.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        ``(mnn_ref, mnn_target)`` int64 arrays.
    """
    file_path = _existing(path, "Pairs file")
    df = pd.read_csv(file_path, sep=_separator(file_path))
    missing = [c for c in (ref_col, target_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Pairs table {file_path} missing columns: {missing}")
    return (
        df[ref_col].to_numpy(dtype=np.int64),
        df[target_col].to_numpy(dtype=np.int64),
    )


def write_matrix(array: np.ndarray, path: PathLike) -> Path:
    """Write a 1-D or 2-D array ensuring the parent directory exists.

    Parameters
    ----------
    array : np.ndarray
        Array to write. 1-D arrays are written as a single ``value`` column
        in CSV.
    path : PathLike
        Output path (``.npy`` or ``.csv``/``.tsv``).

    Returns
    -------
    Path
        The output path.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = output_path.suffix.lower()
    array = np.asarray(array)

    if suffix == ".npy":
        np.save(output_path, array)
    elif suffix in (".csv", ".tsv"):
        if array.ndim == 1:
            df = pd.DataFrame({"value": array})
        else:
            df = pd.DataFrame(array)
        df.to_csv(output_path, index=False, sep=_separator(output_path))
    else:
        raise ValueError(f"Unsupported output format '{suffix}' for {output_path}")
    return output_path
