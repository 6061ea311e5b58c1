"""Core computational modules for BatchMNN.

This package contains:
- correction: MNN correction-vector smoothing and variance adjustment
"""
