"""
Tests for configuration dataclasses and YAML persistence.
"""

import logging

import pytest
import yaml

from funcsim.config import (
    DEFAULT_CONFIG_FILE,
    MIN_WEIGHT,
    SimilarityConfig,
    SimilarityLimits,
    SimilarityThresholds,
    SimilarityWeights,
)
from funcsim.errors import ConfigurationError


class TestSimilarityWeights:
    """Tests for weight validation and conversion."""

    def test_defaults(self):
        """Test default weights sum to one."""
        weights = SimilarityWeights()

        assert weights.as_vector() == [0.30, 0.30, 0.25, 0.15]
        assert weights.total() == pytest.approx(1.0)
        assert weights.different_signature == 0.30

    def test_sum_within_tolerance_accepted(self):
        """Test that small drift from one is tolerated."""
        weights = SimilarityWeights(0.32, 0.30, 0.25, 0.15)

        assert weights.total() == pytest.approx(1.02)

    def test_sum_outside_tolerance_rejected(self):
        """Test that weights far from one are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            SimilarityWeights(0.5, 0.5, 0.25, 0.15)

        assert exc_info.value.field_name == "weights"

    @pytest.mark.parametrize("field_name", ["tree_edit", "token_similarity",
                                            "structural", "signature"])
    def test_non_positive_rejected(self, field_name):
        """Test that every primary weight must be positive."""
        values = dict(tree_edit=0.3, token_similarity=0.3, structural=0.25, signature=0.15)
        values[field_name] = 0.0

        with pytest.raises(ConfigurationError) as exc_info:
            SimilarityWeights(**values)

        assert exc_info.value.field_name == field_name

    def test_different_signature_range(self):
        """Test that the divergence multiplier is a fraction."""
        with pytest.raises(ConfigurationError):
            SimilarityWeights(different_signature=1.5)

    def test_from_vector_rescales(self):
        """Test proportional renormalization."""
        weights = SimilarityWeights.from_vector([2.0, 2.0, 1.0, 1.0])

        assert weights.total() == pytest.approx(1.0)
        assert weights.tree_edit == pytest.approx(2 / 6)
        assert weights.signature == pytest.approx(1 / 6)

    def test_from_vector_floors_small_values(self):
        """Test that non-positive entries keep a small positive share."""
        weights = SimilarityWeights.from_vector([1.0, 0.0, -3.0, 1.0])

        assert min(weights.as_vector()) > 0
        assert weights.structural == pytest.approx(MIN_WEIGHT / (2 + 2 * MIN_WEIGHT))

    def test_from_vector_wrong_length(self):
        """Test rejection of a vector of the wrong size."""
        with pytest.raises(ConfigurationError):
            SimilarityWeights.from_vector([0.5, 0.5])

    def test_renormalized(self):
        """Test that drifted weights are brought back to one."""
        weights = SimilarityWeights(0.32, 0.30, 0.25, 0.15, different_signature=0.4)
        fixed = weights.renormalized()

        assert fixed.total() == pytest.approx(1.0)
        assert fixed.different_signature == 0.4

    def test_dict_round_trip(self):
        """Test dictionary conversion."""
        weights = SimilarityWeights(0.25, 0.35, 0.25, 0.15)

        assert SimilarityWeights.from_dict(weights.to_dict()) == weights

    def test_str(self):
        """Test human-readable formatting."""
        assert "TreeEdit=0.300" in str(SimilarityWeights())


class TestLimitsAndThresholds:
    """Tests for the auxiliary dataclasses."""

    def test_defaults(self):
        """Test documented defaults."""
        limits = SimilarityLimits()
        thresholds = SimilarityThresholds()

        assert (limits.max_signature_length_diff, limits.max_line_difference_ratio,
                limits.max_cache_size, limits.max_empty_vs_populated) == (50, 3.0, 10000, 5)
        assert thresholds.statement_count_penalty == 0.5
        assert thresholds.classification_threshold == 0.7

    def test_invalid_limits(self):
        """Test rejection of unusable limits."""
        with pytest.raises(ConfigurationError):
            SimilarityLimits(max_cache_size=0)
        with pytest.raises(ConfigurationError):
            SimilarityLimits(max_line_difference_ratio=-1.0)

    def test_invalid_thresholds(self):
        """Test that thresholds must be fractions."""
        with pytest.raises(ConfigurationError):
            SimilarityThresholds(statement_count_penalty=2.0)


class TestSimilarityConfig:
    """Tests for the full configuration."""

    def test_invalid_threshold(self):
        """Test threshold bounds."""
        with pytest.raises(ConfigurationError):
            SimilarityConfig(threshold=1.2)

    def test_with_weights_copies(self):
        """Test that with_weights leaves the original untouched."""
        config = SimilarityConfig(threshold=0.9)
        weights = SimilarityWeights(0.4, 0.2, 0.25, 0.15)

        updated = config.with_weights(weights)

        assert updated.weights == weights
        assert updated.threshold == 0.9
        assert config.weights == SimilarityWeights()

    def test_from_dict_partial(self):
        """Test that missing keys fall back to defaults."""
        config = SimilarityConfig.from_dict({'threshold': 0.75, 'limits': {'max_cache_size': 10}})

        assert config.threshold == 0.75
        assert config.limits.max_cache_size == 10
        assert config.limits.max_line_difference_ratio == 3.0
        assert config.weights == SimilarityWeights()

    def test_from_dict_none(self):
        """Test that an empty document yields defaults."""
        assert SimilarityConfig.from_dict(None) == SimilarityConfig()

    def test_from_dict_unknown_keys_warn(self, caplog):
        """Test that unknown keys are ignored with a warning."""
        with caplog.at_level(logging.WARNING, logger="funcsim.config"):
            config = SimilarityConfig.from_dict({'threshold': 0.6, 'colour': 'blue'})

        assert config.threshold == 0.6
        assert "colour" in caplog.text

    def test_from_dict_bad_field(self):
        """Test that an unknown nested field is a configuration error."""
        with pytest.raises(ConfigurationError):
            SimilarityConfig.from_dict({'limits': {'max_widgets': 3}})

    def test_save_and_load(self, tmp_path):
        """Test YAML persistence."""
        config = SimilarityConfig(threshold=0.85, workers=2,
                                  weights=SimilarityWeights(0.35, 0.25, 0.25, 0.15))
        path = config.save_to_file(tmp_path / "nested" / "config.yml")

        assert path.exists()
        assert yaml.safe_load(path.read_text())['weights']['tree_edit'] == 0.35
        assert SimilarityConfig.load_from_file(path) == config

    def test_load_missing_file(self, tmp_path):
        """Test that a missing file is a configuration error."""
        with pytest.raises(ConfigurationError):
            SimilarityConfig.load_from_file(tmp_path / "absent.yml")

    def test_load_invalid_yaml(self, tmp_path):
        """Test malformed YAML."""
        path = tmp_path / "bad.yml"
        path.write_text("threshold: [0.5\n")

        with pytest.raises(ConfigurationError):
            SimilarityConfig.load_from_file(path)

    def test_load_non_mapping(self, tmp_path):
        """Test a YAML document that is not a mapping."""
        path = tmp_path / "list.yml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigurationError):
            SimilarityConfig.load_from_file(path)

    def test_load_or_default_searches_cwd(self, tmp_path, monkeypatch):
        """Test discovery of the default config file."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        SimilarityConfig(threshold=0.66).save_to_file(tmp_path / DEFAULT_CONFIG_FILE)

        assert SimilarityConfig.load_or_default().threshold == 0.66

    def test_load_or_default_falls_back(self, tmp_path, monkeypatch):
        """Test defaults when no config file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

        assert SimilarityConfig.load_or_default() == SimilarityConfig()
