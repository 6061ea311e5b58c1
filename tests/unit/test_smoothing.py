"""Unit tests for Gaussian kernel smoothing of correction vectors."""

import logging

import pytest
import numpy as np
import pandas as pd
from scipy import sparse

from batchmnn.core.correction import (
    DimensionMismatch,
    InvalidParameter,
    average_correction_vectors,
    smooth_gaussian_kernel,
    smooth_with_table,
)
from tests.fixtures import reference_smooth


@pytest.fixture
def smoothing_inputs(small_batch_pair):
    """Correction vectors on a handful of anchors of a small batch."""
    _, target = small_batch_pair
    rng = np.random.default_rng(5)
    index = np.array([0, 3, 3, 7, 9, 0])
    vect = rng.normal(size=(len(index), target.shape[0]))
    return vect, index, target


class TestSmoothGaussianKernel:
    """Tests for smooth_gaussian_kernel."""

    def test_matches_loop_reference(self, smoothing_inputs):
        """Test against the explicit per-cell loop implementation."""
        vect, index, data = smoothing_inputs
        result = smooth_gaussian_kernel(vect, index, data, sigma=1.5)
        expected = reference_smooth(vect, index, data, 1.5)

        assert result.shape == (vect.shape[1], data.shape[1])
        np.testing.assert_allclose(result, expected, rtol=1e-10, atol=1e-12)

    def test_output_is_convex_combination(self, smoothing_inputs):
        """Test each output lies within the range of anchor averages."""
        vect, index, data = smoothing_inputs
        result = smooth_gaussian_kernel(vect, index, data, sigma=2.0)
        averages = average_correction_vectors(vect, index).averages

        lower = averages.min(axis=0)[:, None]
        upper = averages.max(axis=0)[:, None]
        assert np.all(result >= lower - 1e-12)
        assert np.all(result <= upper + 1e-12)

    def test_two_anchor_weights(self):
        """Test the explicit two-anchor weighted average."""
        data = np.array([[0.0, 1.0, 0.4], [0.0, 0.0, 0.3]])
        vect = np.array([[2.0, 0.0], [0.0, 4.0]])
        sigma = 0.8
        s2 = sigma ** 2

        result = smooth_gaussian_kernel(vect, [0, 1], data, sigma)

        d_a = ((data - data[:, [0]]) ** 2).sum(axis=0)
        d_b = ((data - data[:, [1]]) ** 2).sum(axis=0)
        density_a = np.log(np.exp(-d_a[0] / s2) + np.exp(-d_a[1] / s2))
        density_b = np.log(np.exp(-d_b[0] / s2) + np.exp(-d_b[1] / s2))
        w_a = np.exp(-d_a / s2 - density_a)
        w_b = np.exp(-d_b / s2 - density_b)
        expected = (np.outer(vect[0], w_a) + np.outer(vect[1], w_b)) / (w_a + w_b)

        np.testing.assert_allclose(result, expected)

    def test_single_anchor_identity(self, small_batch_pair):
        """Test one anchor applies its average vector to every cell."""
        _, data = small_batch_pair
        vect = np.array([[0.5, -1.0, 2.0, 0.0], [1.5, 1.0, 0.0, 0.0]])
        result = smooth_gaussian_kernel(vect, [4, 4], data, sigma=3.0)

        expected = np.repeat(np.array([[1.0], [0.0], [1.0], [0.0]]), data.shape[1], axis=1)
        np.testing.assert_allclose(result, expected)

    def test_identical_anchors_average(self):
        """Test anchors with identical profiles contribute equally."""
        data = np.array([[1.0, 1.0, 3.0, -2.0], [0.0, 0.0, 2.0, 5.0]])
        vect = np.array([[4.0, 0.0], [0.0, 2.0]])
        result = smooth_gaussian_kernel(vect, [0, 1], data, sigma=1.0)

        expected = np.repeat(np.array([[2.0], [1.0]]), 4, axis=1)
        np.testing.assert_allclose(result, expected)

    def test_distance_genes_differ_from_payload(self, batch_pair):
        """Test vectors with fewer genes than the expression matrix."""
        _, data = batch_pair
        vect = np.array([[1.0, 2.0, 3.0], [3.0, 2.0, 1.0]])
        result = smooth_gaussian_kernel(vect, [0, 10], data, sigma=3.0)
        assert result.shape == (3, data.shape[1])
        assert np.all(np.isfinite(result))

    def test_one_based_index(self, smoothing_inputs):
        """Test 1-based indices give the same result as 0-based."""
        vect, index, data = smoothing_inputs
        zero = smooth_gaussian_kernel(vect, index, data, sigma=1.5)
        one = smooth_gaussian_kernel(vect, index + 1, data, sigma=1.5, index_base=1)
        np.testing.assert_allclose(one, zero)

    def test_narrow_kernel_keeps_anchor_average(self, batch_pair):
        """Test log-space weights stay finite when exp(-d2/s2) underflows."""
        _, data = batch_pair
        vect = np.array([[1.0] * 8, [-1.0] * 8])
        index = [2, 11]
        result = smooth_gaussian_kernel(vect, index, data, sigma=1e-3)

        np.testing.assert_allclose(result[:, 2], 1.0)
        np.testing.assert_allclose(result[:, 11], -1.0)
        others = [j for j in range(data.shape[1]) if j not in index]
        assert np.all(np.isnan(result[:, others]))

    def test_zero_anchors(self, small_batch_pair, caplog):
        """Test no pairs gives undefined corrections for every cell."""
        _, data = small_batch_pair
        with caplog.at_level(logging.WARNING):
            result = smooth_gaussian_kernel(np.zeros((0, 3)), [], data, sigma=1.0)

        assert result.shape == (3, data.shape[1])
        assert np.all(np.isnan(result))
        assert "No MNN anchor cells" in caplog.text

    def test_inputs_not_modified(self, smoothing_inputs):
        """Test caller arrays are left untouched."""
        vect, index, data = smoothing_inputs
        vect_copy, index_copy, data_copy = vect.copy(), index.copy(), data.copy()
        smooth_gaussian_kernel(vect, index, data, sigma=1.0)

        np.testing.assert_array_equal(vect, vect_copy)
        np.testing.assert_array_equal(index, index_copy)
        np.testing.assert_array_equal(data, data_copy)


class TestSmoothingBackends:
    """Tests that chunked, sparse, and threaded paths agree."""

    def test_chunked(self, smoothing_inputs):
        """Test column chunking does not change the result."""
        vect, index, data = smoothing_inputs
        dense = smooth_gaussian_kernel(vect, index, data, sigma=1.5)
        chunked = smooth_gaussian_kernel(vect, index, data, sigma=1.5, chunk_size=3)
        np.testing.assert_allclose(chunked, dense)

    def test_sparse(self, smoothing_inputs):
        """Test sparse expression input."""
        vect, index, data = smoothing_inputs
        dense = smooth_gaussian_kernel(vect, index, data, sigma=1.5)
        from_sparse = smooth_gaussian_kernel(
            vect, index, sparse.csr_matrix(data), sigma=1.5, chunk_size=4
        )
        np.testing.assert_allclose(from_sparse, dense)

    def test_dataframe(self, smoothing_inputs):
        """Test DataFrame expression input."""
        vect, index, data = smoothing_inputs
        dense = smooth_gaussian_kernel(vect, index, data, sigma=1.5)
        from_df = smooth_gaussian_kernel(vect, index, pd.DataFrame(data), sigma=1.5)
        np.testing.assert_allclose(from_df, dense)

    def test_threads(self, smoothing_inputs):
        """Test multiple worker threads agree with a single thread."""
        vect, index, data = smoothing_inputs
        single = smooth_gaussian_kernel(vect, index, data, sigma=1.5, n_jobs=1)
        threaded = smooth_gaussian_kernel(vect, index, data, sigma=1.5, n_jobs=3)
        np.testing.assert_allclose(threaded, single, rtol=1e-12)

    def test_with_precomputed_table(self, smoothing_inputs):
        """Test smoothing from an already aggregated table."""
        vect, index, data = smoothing_inputs
        table = average_correction_vectors(vect, index)
        np.testing.assert_allclose(
            smooth_with_table(table, data, 1.5),
            smooth_gaussian_kernel(vect, index, data, sigma=1.5),
        )


class TestSmoothingValidation:
    """Tests for argument validation."""

    def test_length_mismatch_before_data_read(self):
        """Test vect/index mismatch is reported before data is inspected."""
        # data=None would fail as a matrix, so only the length check can fire
        with pytest.raises(DimensionMismatch):
            smooth_gaussian_kernel(np.ones((3, 2)), [0, 1], None, sigma=1.0)

    @pytest.mark.parametrize(
        "sigma", [0, -1.0, float("inf"), float("nan"), True, "0.1", 1e-200, 1e200]
    )
    def test_invalid_sigma(self, smoothing_inputs, sigma):
        """Test bandwidths that are unusable directly or once squared."""
        vect, index, data = smoothing_inputs
        with pytest.raises(InvalidParameter):
            smooth_gaussian_kernel(vect, index, data, sigma=sigma)

    def test_numpy_scalar_sigma(self, smoothing_inputs):
        """Test one-element arrays are accepted as sigma."""
        vect, index, data = smoothing_inputs
        np.testing.assert_allclose(
            smooth_gaussian_kernel(vect, index, data, sigma=np.array([1.5])),
            smooth_gaussian_kernel(vect, index, data, sigma=1.5),
        )

    def test_anchor_out_of_range(self, small_batch_pair):
        """Test anchors beyond the last column are rejected."""
        _, data = small_batch_pair
        with pytest.raises(InvalidParameter):
            smooth_gaussian_kernel(np.ones((1, 4)), [data.shape[1]], data, sigma=1.0)

    def test_invalid_n_jobs(self, smoothing_inputs):
        """Test n_jobs must be positive or -1."""
        vect, index, data = smoothing_inputs
        with pytest.raises(InvalidParameter):
            smooth_gaussian_kernel(vect, index, data, sigma=1.0, n_jobs=0)
