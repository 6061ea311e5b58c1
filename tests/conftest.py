"""Pytest configuration and shared fixtures for BatchMNN tests."""

import sys
from pathlib import Path

import pytest
import numpy as np

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import synthetic data generators
from tests.fixtures import (
    create_batch_pair,
    create_mnn_pairs,
)


# ============================================================================
# Batch Fixtures
# ============================================================================


@pytest.fixture
def batch_pair():
    """Reference and shifted target batch, genes x cells (8 genes)."""
    return create_batch_pair(n_genes=8, n_ref=40, n_target=30, shift=1.5, seed=42)


@pytest.fixture
def small_batch_pair():
    """Tiny batches for quick tests."""
    return create_batch_pair(n_genes=4, n_ref=12, n_target=10, shift=1.0, seed=7)


@pytest.fixture
def mnn_pairs(batch_pair):
    """Mutual nearest-neighbour pairs for ``batch_pair``."""
    ref, target = batch_pair
    return create_mnn_pairs(ref, target)


@pytest.fixture
def pair_vectors():
    """Five pair vectors over three genes attached to three anchors."""
    vect = np.array([
        [1.0, 1.0, 0.0],
        [3.0, 3.0, 2.0],
        [0.0, -1.0, 4.0],
        [2.0, 0.0, 0.0],
        [4.0, 2.0, 2.0],
    ])
    index = np.array([5, 5, 0, 2, 2])
    return vect, index


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_correction_config(tmp_path) -> Path:
    """Create a sample correction configuration file."""
    import yaml

    config = {
        "correction": {
            "smoothing": {"sigma": 0.5, "n_jobs": 2},
            "variance": {"sigma": 0.75, "min_scale": 0.0},
            "cos_norm": True,
            "var_adj": False,
        },
    }

    path = tmp_path / "correction.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir
