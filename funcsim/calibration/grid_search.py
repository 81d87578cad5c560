"""
Exhaustive grid search over similarity weight vectors.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..config import WEIGHT_SUM_TOLERANCE, SimilarityWeights
from ..errors import ConfigurationError
from .validator import StatisticalValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class GridSearchConfig:
    """Inclusive ranges per primary weight and the grid resolution."""

    tree_edit: Tuple[float, float] = (0.10, 0.50)
    token_similarity: Tuple[float, float] = (0.10, 0.50)
    structural: Tuple[float, float] = (0.10, 0.40)
    signature: Tuple[float, float] = (0.05, 0.30)
    step: float = 0.05
    sum_tolerance: float = 0.01

    def __post_init__(self):
        if self.step <= 0:
            raise ConfigurationError("step must be positive", field_name="step", value=self.step)
        if not 0 <= self.sum_tolerance <= WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"sum_tolerance must be between 0 and {WEIGHT_SUM_TOLERANCE}, got {self.sum_tolerance}",
                field_name="sum_tolerance", value=self.sum_tolerance
            )
        for name in ("tree_edit", "token_similarity", "structural", "signature"):
            low, high = getattr(self, name)
            if low <= 0 or high < low:
                raise ConfigurationError(
                    f"invalid range for {name}: ({low}, {high})",
                    field_name=name, value=(low, high)
                )

    def axis(self, bounds: Tuple[float, float]) -> List[float]:
        """Grid points for one weight, stepped in whole multiples of ``step``."""
        low, high = bounds
        count = int(round((high - low) / self.step))
        return [float(v) for v in np.round(low + self.step * np.arange(count + 1), 6)]

    def candidates(self) -> List[Tuple[float, float, float, float]]:
        """All grid vectors whose components sum to one."""
        axes = [self.axis(self.tree_edit), self.axis(self.token_similarity),
                self.axis(self.structural), self.axis(self.signature)]
        return [combo for combo in itertools.product(*axes)
                if abs(sum(combo) - 1.0) <= self.sum_tolerance]


@dataclass
class OptimizationResult:
    """Outcome of a grid search."""

    best_weights: SimilarityWeights
    best_score: float
    best_validation: ValidationResult
    baseline_weights: SimilarityWeights
    baseline_score: float
    iterations: int
    duration: float = 0.0
    evaluated: List[Tuple[SimilarityWeights, float]] = field(default_factory=list, repr=False)

    @property
    def improvement(self) -> float:
        return self.best_score - self.baseline_score

    def top_results(self, count: int = 5) -> List[Tuple[SimilarityWeights, float]]:
        return sorted(self.evaluated, key=lambda item: item[1], reverse=True)[:count]


class GridSearchOptimizer:
    """
    Evaluates every weight vector on the grid and keeps the best one.

    The baseline weights are scored first and act as the initial best, so
    the search never reports anything worse than the starting point. Ties
    keep the vector that was evaluated first, which makes the search
    deterministic.
    """

    def __init__(self, validator: StatisticalValidator,
                 grid: Optional[GridSearchConfig] = None):
        self.validator = validator
        self.grid = grid or GridSearchConfig()

    def optimize(self, baseline: Optional[SimilarityWeights] = None) -> OptimizationResult:
        baseline = baseline or SimilarityWeights()
        start_time = time.time()

        baseline_validation = self.validator.validate(baseline)
        baseline_score = baseline_validation.composite_score

        best_weights, best_score, best_validation = baseline, baseline_score, baseline_validation
        evaluated = [(baseline, baseline_score)]

        candidates = self.grid.candidates()
        logger.info(f"Grid search over {len(candidates)} weight combinations "
                    f"(baseline score {baseline_score:.4f})")

        for index, vector in enumerate(candidates, 1):
            weights = SimilarityWeights(*vector, different_signature=baseline.different_signature)
            validation = self.validator.validate(weights)
            score = validation.composite_score
            evaluated.append((weights, score))

            if score > best_score:
                best_weights, best_score, best_validation = weights, score, validation
                logger.debug(f"New best at {index}/{len(candidates)}: {weights} -> {score:.4f}")

            if index % 100 == 0:
                logger.info(f"Evaluated {index}/{len(candidates)} combinations, "
                            f"best score {best_score:.4f}")

        duration = time.time() - start_time
        logger.info(f"Grid search finished in {duration:.2f}s: best score {best_score:.4f}")

        return OptimizationResult(
            best_weights=best_weights,
            best_score=best_score,
            best_validation=best_validation,
            baseline_weights=baseline,
            baseline_score=baseline_score,
            iterations=len(candidates),
            duration=duration,
            evaluated=evaluated,
        )
