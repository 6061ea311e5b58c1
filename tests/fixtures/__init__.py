"""Test fixtures for BatchMNN.

Provides synthetic batch generators and reference implementations.
"""

from .mock_batches import (
    create_batch_pair,
    create_mnn_pairs,
    reference_smooth,
    reference_adjust_variance,
)

__all__ = [
    "create_batch_pair",
    "create_mnn_pairs",
    "reference_smooth",
    "reference_adjust_variance",
]
