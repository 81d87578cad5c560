"""
Tests for the statistical validator and its metrics.
"""

import ast

import numpy as np
import pytest

from funcsim.calibration.dataset import (
    CATEGORIES,
    ValidationCase,
    default_validation_suite,
    group_by_category,
)
from funcsim.calibration.validator import (
    CaseResult,
    StatisticalValidator,
    category_stats,
    consistency_score,
    discrimination_score,
    error_distribution,
    perturbed_variants,
    r_squared,
    robustness_score,
)
from funcsim.config import SimilarityWeights
from funcsim.errors import ParseError


def _result(expected, actual, perturbed=None, category="renamed", name="case"):
    return CaseResult(name=name, category=category, expected=expected,
                      actual=actual, perturbed=perturbed or [])


@pytest.fixture(scope="module")
def validator():
    return StatisticalValidator()


class TestDataset:
    """Tests for the built-in validation suite."""

    def test_every_category_covered(self):
        """Test category coverage and expected ranges."""
        cases = default_validation_suite()
        groups = group_by_category(cases)

        assert set(groups) == set(CATEGORIES)
        assert all(0.0 <= case.expected_similarity <= 1.0 for case in cases)
        assert len({case.name for case in cases}) == len(cases)

    def test_pairs_parse(self):
        """Test that every case produces two descriptors."""
        for case in default_validation_suite():
            a, b = case.create_function_pair()
            assert a.has_body and b.has_body

    def test_case_without_function(self):
        """Test that a case with no function is a parse error."""
        case = ValidationCase("broken", "x = 1", "def f():\n    return 1\n", 0.5, "unrelated")

        with pytest.raises(ParseError):
            case.create_function_pair()


class TestStatisticalValidator:
    """Tests for validating weight vectors."""

    def test_identical_cases_score_one(self, validator):
        """Test that identical pairs score perfectly."""
        result = validator.validate(SimilarityWeights())

        identical = [c for c in result.case_results if c.category == "identical"]
        assert identical
        assert all(c.actual == 1.0 for c in identical)

    def test_metrics_in_range(self, validator):
        """Test that every bounded metric is in [0, 1]."""
        result = validator.validate(SimilarityWeights())

        for value in (result.mae, result.precision, result.recall, result.f1_score,
                      result.accuracy, result.robustness_score, result.consistency_score,
                      result.discrimination_score, result.composite_score):
            assert 0.0 <= value <= 1.0
        assert result.rmse == pytest.approx(np.sqrt(result.mse))
        assert -1.0 <= result.pearson_r <= 1.0

    def test_composite_score_formula(self, validator):
        """Test the composite combination of MAE, R2 and F1."""
        result = validator.validate(SimilarityWeights())

        expected = (0.5 * (1 - result.mae) + 0.25 * min(max(result.r2, 0.0), 1.0)
                    + 0.25 * result.f1_score)
        assert result.composite_score == pytest.approx(expected)

    def test_robustness_reflects_mirrored_variants(self, validator):
        """Test that structure-changing variants move the robustness score."""
        result = validator.validate(SimilarityWeights())

        assert all(len(c.perturbed) == 4 for c in result.case_results)
        assert 0.0 < result.robustness_score < 1.0

    def test_neutral_variants_keep_scores(self, validator):
        """Test that renamed, reformatted and commented variants score like the original."""
        result = validator.validate(SimilarityWeights())

        for case in result.case_results:
            assert case.perturbed[:3] == pytest.approx([case.actual] * 3)

    def test_deterministic(self, validator):
        """Test that repeated validation gives identical results."""
        weights = SimilarityWeights(0.35, 0.25, 0.25, 0.15)

        first = validator.validate(weights)
        second = validator.validate(weights)

        assert [c.actual for c in first.case_results] == [c.actual for c in second.case_results]
        assert first.composite_score == second.composite_score

    def test_category_stats_present(self, validator):
        """Test per-category breakdown."""
        result = validator.validate(SimilarityWeights())

        assert set(result.category_stats) == set(CATEGORIES)
        assert sum(s.count for s in result.category_stats.values()) == len(result.case_results)

    def test_worst_cases_sorted(self, validator):
        """Test ordering of the worst cases."""
        worst = validator.validate(SimilarityWeights()).worst_cases(3)
        errors = [c.absolute_error for c in worst]

        assert errors == sorted(errors, reverse=True)
        assert len(worst) == 3

    def test_without_perturbation(self):
        """Test that robustness is perfect when no variants are scored."""
        result = StatisticalValidator(perturb=False).validate(SimilarityWeights())

        assert all(c.perturbed == [] for c in result.case_results)
        assert result.robustness_score == 1.0

    def test_empty_suite_rejected(self):
        """Test that a validator needs at least one case."""
        with pytest.raises(ValueError):
            StatisticalValidator(cases=[])


class TestMetrics:
    """Tests for the individual metric functions."""

    def test_r_squared(self):
        """Test perfect fit and constant expectations."""
        expected = np.array([0.0, 0.5, 1.0])

        assert r_squared(expected, expected) == 1.0
        assert r_squared(np.array([0.5, 0.5]), np.array([0.1, 0.9])) == 0.0

    def test_consistency_perfect(self):
        """Test zero variance within bins."""
        results = [_result(0.9, 0.8), _result(0.95, 0.8), _result(0.1, 0.2), _result(0.0, 0.2)]

        assert consistency_score(results) == 1.0

    def test_consistency_penalizes_spread(self):
        """Test that spread within a bin lowers the score."""
        results = [_result(0.9, 0.2), _result(0.95, 1.0)]

        assert consistency_score(results) == pytest.approx(1 / (1 + 0.16))

    def test_consistency_neutral_without_samples(self):
        """Test the neutral value when every bin is too small."""
        assert consistency_score([_result(0.9, 0.9), _result(0.1, 0.1)]) == 0.5

    def test_discrimination(self):
        """Test concordant, discordant and tied orderings."""
        expected = [1.0, 0.5, 0.0]

        ordered = [_result(e, a) for e, a in zip(expected, [0.9, 0.6, 0.1])]
        reversed_ = [_result(e, a) for e, a in zip(expected, [0.1, 0.6, 0.9])]
        tied = [_result(e, 0.5) for e in expected]

        assert discrimination_score(ordered) == 1.0
        assert discrimination_score(reversed_) == 0.0
        assert discrimination_score(tied) == 0.5

    def test_discrimination_neutral_when_all_expected_equal(self):
        """Test the neutral value without comparable pairs."""
        assert discrimination_score([_result(0.5, 0.1), _result(0.5, 0.9)]) == 0.5

    def test_robustness(self):
        """Test stable and unstable perturbations."""
        assert robustness_score([_result(0.8, 0.8, [0.8, 0.8])]) == pytest.approx(1.0)
        assert robustness_score([_result(1.0, 1.0, [0.0])]) == 0.0
        assert robustness_score([_result(0.5, 0.5)]) == 1.0

    def test_error_distribution(self):
        """Test summary statistics of signed errors."""
        distribution = error_distribution(np.array([-0.2, 0.0, 0.0, 0.2]))

        assert distribution.mean == pytest.approx(0.0)
        assert distribution.median == pytest.approx(0.0)
        assert distribution.skewness == pytest.approx(0.0)
        assert distribution.iqr == pytest.approx(distribution.q75 - distribution.q25)

    def test_error_distribution_constant(self):
        """Test that zero spread does not produce NaN moments."""
        distribution = error_distribution(np.array([0.5, 0.5, 0.5]))

        assert distribution.std_dev == 0.0
        assert distribution.skewness == 0.0
        assert distribution.kurtosis == 0.0

    def test_category_stats(self):
        """Test grouping by category."""
        stats = category_stats([
            _result(1.0, 0.8, category="identical"),
            _result(1.0, 1.0, category="identical"),
            _result(0.1, 0.3, category="unrelated"),
        ])

        assert stats["identical"].count == 2
        assert stats["identical"].mae == pytest.approx(0.1)
        assert stats["identical"].max_error == pytest.approx(0.2)
        assert stats["unrelated"].mean_actual == pytest.approx(0.3)


class TestPerturbations:
    """Tests for semantically neutral rewrites."""

    SOURCE = '''
        def scale(values, factor):
            """Multiply every value."""
            scaled = []
            for value in values:
                scaled.append(value * factor)
            return scaled
    '''

    def test_variant_kinds(self):
        """Test that every kind of variant is produced."""
        variants = perturbed_variants(self.SOURCE, "scale")

        assert [v.file for v in variants] == ["scale_renamed.py", "scale_reformatted.py",
                                              "scale_commented.py", "scale_mirrored.py"]

    def test_neutral_variants_share_structure(self):
        """Test that the renamed, reformatted and commented variants keep the hash."""
        case = ValidationCase("scale", self.SOURCE, self.SOURCE, 1.0, "identical")
        a, _ = case.create_function_pair()

        for variant in perturbed_variants(self.SOURCE, "scale")[:3]:
            assert variant.structural_hash == a.structural_hash

    def test_mirrored_variant_swaps_operands(self):
        """Test that products and comparisons are mirrored."""
        source = '''
            def clip(value, limit):
                if value > limit:
                    return limit * 2
                return value
        '''
        case = ValidationCase("clip", source, source, 1.0, "identical")
        a, _ = case.create_function_pair()

        mirrored = perturbed_variants(source, "clip")[-1]
        text = ast.unparse(mirrored.tree)

        assert "limit < value" in text
        assert "2 * limit" in text
        assert mirrored.structural_hash != a.structural_hash

    def test_renamed_variant_changes_identifiers(self):
        """Test that the rename actually touches the source."""
        renamed = perturbed_variants(self.SOURCE, "scale")[0]
        names = {arg.arg for arg in renamed.tree.args.args}

        assert names == {"values_v2", "factor_v2"}
