"""Unit tests for correction configuration."""

import pytest

from batchmnn.core.correction import (
    CorrectionConfig,
    InvalidParameter,
    SmoothingConfig,
    VarianceAdjustmentConfig,
)


class TestCorrectionConfig:
    """Tests for CorrectionConfig."""

    def test_defaults(self):
        """Test default values."""
        config = CorrectionConfig.default()
        assert config.smoothing.sigma == 0.1
        assert config.smoothing.index_base == 0
        assert config.variance.min_scale == 1.0
        assert config.var_adj is True
        assert config.cos_norm is False

    def test_from_yaml(self, sample_correction_config):
        """Test loading a nested correction section."""
        config = CorrectionConfig.from_yaml(sample_correction_config)
        assert config.smoothing.sigma == 0.5
        assert config.smoothing.n_jobs == 2
        assert config.variance.sigma == 0.75
        assert config.variance.min_scale == 0.0
        assert config.cos_norm is True
        assert config.var_adj is False

    def test_empty_yaml(self, tmp_path):
        """Test an empty file gives defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert CorrectionConfig.from_yaml(path).to_dict() == CorrectionConfig().to_dict()

    def test_to_dict_round_trip(self, sample_correction_config):
        """Test to_dict output is accepted by from_dict."""
        config = CorrectionConfig.from_yaml(sample_correction_config)
        rebuilt = CorrectionConfig.from_dict(config.to_dict())
        assert rebuilt == config

    def test_unknown_key(self):
        """Test misspelled keys are reported."""
        with pytest.raises(InvalidParameter, match="Unknown configuration key"):
            CorrectionConfig.from_dict({"smoothing": {"sigmaa": 1.0}})

    def test_invalid_value_from_dict(self):
        """Test values are validated after loading."""
        with pytest.raises(InvalidParameter):
            CorrectionConfig.from_dict({"variance": {"sigma": 0}})


class TestSectionValidation:
    """Tests for per-section validate()."""

    @pytest.mark.parametrize("kwargs", [
        {"sigma": 0.0},
        {"sigma": 1e-200},
        {"index_base": 2},
        {"n_jobs": 0},
        {"chunk_size": 0},
    ])
    def test_smoothing_invalid(self, kwargs):
        """Test invalid smoothing fields."""
        with pytest.raises(InvalidParameter):
            SmoothingConfig(**kwargs).validate()

    def test_variance_nan_min_scale(self):
        """Test NaN lower bound is rejected."""
        with pytest.raises(InvalidParameter):
            VarianceAdjustmentConfig(min_scale=float("nan")).validate()

    def test_validate_returns_self(self):
        """Test validate() can be chained."""
        config = VarianceAdjustmentConfig(n_jobs=-1)
        assert config.validate() is config
