"""BatchMNN: numerical kernels for mutual-nearest-neighbour batch correction.

This package provides tools for:
- Averaging MNN pair correction vectors per anchor cell
- Gaussian kernel smoothing of correction vectors across a batch
- Quantile-matching variance adjustment of correction magnitudes
- Two-batch correction from caller-supplied MNN pairs

Parameters can be loaded from YAML configuration files.

Example usage:
    >>> from batchmnn.core.correction import MNNCorrector, CorrectionConfig
    >>>
    >>> config = CorrectionConfig.from_yaml("correction.yaml")
    >>> result = MNNCorrector(config).correct(ref, target, mnn_ref, mnn_target)
    >>> result.corrected
"""

__version__ = "0.1.0"
