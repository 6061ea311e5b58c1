"""MNN correction kernels.

Provides the two numerical kernels of MNN batch correction and a small
two-batch engine built on top of them.

Kernels
-------
- Aggregation: mean correction vector per anchor cell
- Smoothing: Gaussian kernel blend of anchor vectors over every cell
- Geometry: squared distance from points to a line
- Variance: per-cell scaling by weighted quantile matching

All expression matrices are genes (rows) x cells (columns).

Example Usage
-------------
>>> from batchmnn.core.correction import (
...     smooth_gaussian_kernel,
...     adjust_shift_variance,
... )
>>> correction = smooth_gaussian_kernel(vect, index, target, sigma=0.1)
>>> scales = adjust_shift_variance(ref, target, correction.T, sigma=0.1)
"""

# Configuration classes
from .config import (
    SmoothingConfig,
    VarianceAdjustmentConfig,
    CorrectionConfig,
)

# Errors
from .errors import (
    CorrectionError,
    DimensionMismatch,
    InvalidParameter,
)

# Matrix access
from .matrix import (
    MatrixAccessor,
    as_accessor,
)

# Kernels
from .aggregation import (
    AverageVectorTable,
    average_correction_vectors,
)
from .smoothing import (
    smooth_gaussian_kernel,
    smooth_with_table,
)
from .geometry import sq_distance_to_line
from .variance import adjust_shift_variance

# Engine
from .engine import (
    MNNCorrector,
    CorrectionResult,
    compute_correction_vectors,
    cosine_normalize,
)

__all__ = [
    # Config
    "SmoothingConfig",
    "VarianceAdjustmentConfig",
    "CorrectionConfig",
    # Errors
    "CorrectionError",
    "DimensionMismatch",
    "InvalidParameter",
    # Matrix access
    "MatrixAccessor",
    "as_accessor",
    # Kernels
    "AverageVectorTable",
    "average_correction_vectors",
    "smooth_gaussian_kernel",
    "smooth_with_table",
    "sq_distance_to_line",
    "adjust_shift_variance",
    # Engine
    "MNNCorrector",
    "CorrectionResult",
    "compute_correction_vectors",
    "cosine_normalize",
]
