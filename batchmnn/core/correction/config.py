"""Configuration classes for MNN correction.

All kernel parameters are configurable via YAML so that runs can be
reproduced from a single file.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import InvalidParameter, check_chunk_size, check_n_jobs, check_sigma


@dataclass
class SmoothingConfig:
    """Configuration for Gaussian kernel smoothing.

    Attributes
    ----------
    sigma : float
        Kernel bandwidth; log-weights are -d2 / sigma**2
    index_base : int
        Numbering of anchor cell indices (0 or 1)
    n_jobs : int
        Worker threads (-1 for all cores)
    chunk_size : Optional[int]
        Columns of the expression matrix densified at a time
    """

    sigma: float = 0.1
    index_base: int = 0
    n_jobs: int = 1
    chunk_size: Optional[int] = None

    def validate(self) -> "SmoothingConfig":
        """Check all fields, raising InvalidParameter on the first bad one."""
        check_sigma(self.sigma)
        if self.index_base not in (0, 1):
            raise InvalidParameter(f"'index_base' should be 0 or 1, got {self.index_base!r}")
        check_n_jobs(self.n_jobs)
        check_chunk_size(self.chunk_size)
        return self


@dataclass
class VarianceAdjustmentConfig:
    """Configuration for quantile-matching variance adjustment.

    Attributes
    ----------
    sigma : float
        Kernel bandwidth for the line-distance weights
    n_jobs : int
        Worker threads (-1 for all cores)
    chunk_size : Optional[int]
        Columns of each batch densified at a time
    min_scale : float
        Lower bound applied to scaling factors before they multiply the
        correction vectors
    """

    sigma: float = 0.1
    n_jobs: int = 1
    chunk_size: Optional[int] = None
    min_scale: float = 1.0

    def validate(self) -> "VarianceAdjustmentConfig":
        """Check all fields, raising InvalidParameter on the first bad one."""
        check_sigma(self.sigma)
        check_n_jobs(self.n_jobs)
        check_chunk_size(self.chunk_size)
        try:
            min_scale = float(self.min_scale)
        except (TypeError, ValueError):
            raise InvalidParameter(f"'min_scale' should be a number, got {self.min_scale!r}")
        if math.isnan(min_scale):
            raise InvalidParameter("'min_scale' should not be NaN")
        return self


@dataclass
class CorrectionConfig:
    """Master configuration for two-batch MNN correction.

    Attributes
    ----------
    smoothing : SmoothingConfig
        Smoothing of the pair correction vectors
    variance : VarianceAdjustmentConfig
        Variance adjustment of the smoothed vectors
    cos_norm : bool
        Cosine-normalize both batches before computing corrections
    var_adj : bool
        Whether to apply variance adjustment
    """

    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    variance: VarianceAdjustmentConfig = field(default_factory=VarianceAdjustmentConfig)
    cos_norm: bool = False
    var_adj: bool = True

    @classmethod
    def from_yaml(cls, path: Path) -> "CorrectionConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested correction section
        if "correction" in data:
            data = data["correction"] or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrectionConfig":
        """Build configuration from a plain dictionary."""
        try:
            config = cls(
                smoothing=SmoothingConfig(**(data.get("smoothing") or {})),
                variance=VarianceAdjustmentConfig(**(data.get("variance") or {})),
                cos_norm=bool(data.get("cos_norm", False)),
                var_adj=bool(data.get("var_adj", True)),
            )
        except TypeError as e:
            raise InvalidParameter(f"Unknown configuration key: {e}") from e
        return config.validate()

    @classmethod
    def default(cls) -> "CorrectionConfig":
        """Create default configuration."""
        return cls()

    def validate(self) -> "CorrectionConfig":
        """Validate every section."""
        self.smoothing.validate()
        self.variance.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "smoothing": {
                "sigma": self.smoothing.sigma,
                "index_base": self.smoothing.index_base,
                "n_jobs": self.smoothing.n_jobs,
                "chunk_size": self.smoothing.chunk_size,
            },
            "variance": {
                "sigma": self.variance.sigma,
                "n_jobs": self.variance.n_jobs,
                "chunk_size": self.variance.chunk_size,
                "min_scale": self.variance.min_scale,
            },
            "cos_norm": self.cos_norm,
            "var_adj": self.var_adj,
        }
