"""Command-line interface for BatchMNN.

Provides CLI commands for running the correction kernels on files.

Example Usage
-------------
    # From command line:
    batchmnn --help
    batchmnn smooth --vect vect.npy --index index.txt --data target.npy --out out/
    batchmnn adjust-variance --ref ref.npy --target target.npy --vect out/smoothed.npy --out out/
    batchmnn correct --ref ref.npy --target target.npy --pairs pairs.csv --out out/
"""

__version__ = "0.1.0"

from .main import cli, main

__all__ = [
    "__version__",
    "cli",
    "main",
]
