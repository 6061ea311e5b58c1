"""Test suite for BatchMNN.

Test organization:
- fixtures/: Synthetic matrix generators
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
