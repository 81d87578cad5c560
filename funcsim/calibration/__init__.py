"""Weight calibration: validation suite, metrics and optimizers."""

from .dataset import ValidationCase, default_validation_suite
from .genetic import GeneticOptimizer, GeneticParameters, GeneticResult, GenerationStats, Individual
from .grid_search import GridSearchConfig, GridSearchOptimizer, OptimizationResult
from .validator import CaseResult, StatisticalValidator, ValidationResult

__all__ = [
    "CaseResult",
    "GenerationStats",
    "GeneticOptimizer",
    "GeneticParameters",
    "GeneticResult",
    "GridSearchConfig",
    "GridSearchOptimizer",
    "Individual",
    "OptimizationResult",
    "StatisticalValidator",
    "ValidationCase",
    "ValidationResult",
    "default_validation_suite",
]
